"""
Task Collection
===============
Creates jobs and field tasks for a content item. Used by discovery and by
on-demand single item translation.
"""
from typing import Iterable, List, Optional

from translation_orchestrator.database import JobRepository, TaskRepository
from translation_orchestrator.models import ContentItem, Job
from translation_orchestrator.services.interfaces import ContentProvider
from translation_orchestrator.utils.logging import get_logger


class TaskCollector:
    """Seeds jobs and their tasks from an item's translatable fields."""

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        content_provider: ContentProvider
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.content_provider = content_provider
        self.logger = get_logger().job_logger

    def source_language(self, item: ContentItem) -> Optional[str]:
        return self.content_provider.get_language(item)

    def has_job_for_language(self, item: ContentItem, lang_to: str) -> bool:
        """Coverage check; failed and cancelled jobs do not count."""
        return self.job_repository.has_coverage_job(
            item.kind, item.id, self.source_language(item), lang_to
        )

    def create_pending_job(self, item: ContentItem, lang_to: str) -> Job:
        return self.job_repository.create(
            item.kind, item.id, self.source_language(item), lang_to, item.content_type
        )

    def create_completed_job(self, item: ContentItem, lang_to: str, translation_id: int) -> Job:
        """Record an existing translation so discovery does not pick it up again."""
        return self.job_repository.create_completed(
            item.kind, item.id, self.source_language(item), lang_to,
            item.content_type, translation_id
        )

    def add_translation_task(
        self,
        item: ContentItem,
        lang_to: str,
        reference: str,
        value: str
    ) -> bool:
        """
        Attach a field to the item's pending job for lang_to.

        Reuses the active job and a pending task for the same reference when
        they exist, refreshing the task value if the source changed.

        Returns:
            True if a task was created or updated
        """
        if self.content_provider.is_excluded(item):
            return False

        job = self.job_repository.create(
            item.kind, item.id, self.source_language(item), lang_to, item.content_type
        )

        existing = self.task_repository.find_pending_by_reference(job.id, reference)
        if existing is not None:
            if existing.value == value:
                return False
            self.task_repository.update_value(existing, value)
            return True

        self.task_repository.create(reference=reference, value=value, job_id=job.id)
        return True

    def collect_tasks_for_languages(
        self,
        item: ContentItem,
        target_languages: Iterable[str],
        force: bool = False
    ) -> List[str]:
        """
        Create tasks for every non-empty field of the item in each language.

        Without force, languages that already have a translation link are
        skipped.

        Returns:
            The languages tasks were collected for
        """
        if force:
            languages = list(target_languages)
        else:
            languages = [
                lang for lang in target_languages
                if not self.content_provider.get_translation_link(item, lang)
            ]

        if not languages:
            return []

        fields = self.content_provider.get_fields(item)
        for lang in languages:
            for reference, value in fields.items():
                if not value or not isinstance(value, str):
                    continue
                self.add_translation_task(item, lang, reference, value)

        self.logger.debug(f"Collected {len(fields)} fields of {item} for {', '.join(languages)}")
        return languages
