"""
Content Lifecycle
=================
Keeps translation accounting in step with the host content: deleted items
take their jobs (and, by cascade, tasks) with them, and edited source items
get tasks for the fields that changed.
"""
from typing import Dict, List

from translation_orchestrator.database import JobRepository
from translation_orchestrator.models import ContentItem
from translation_orchestrator.services.interfaces import ContentProvider, LanguageManager
from translation_orchestrator.services.task_collection import TaskCollector
from translation_orchestrator.utils.logging import get_logger


class ContentCleanupService:
    """Reacts to deleted and edited content items."""

    def __init__(
        self,
        job_repository: JobRepository,
        collector: TaskCollector,
        content_provider: ContentProvider,
        language_manager: LanguageManager
    ):
        self.job_repository = job_repository
        self.collector = collector
        self.content_provider = content_provider
        self.language_manager = language_manager
        self.logger = get_logger().db_logger

    def cleanup_for_content(self, item: ContentItem) -> int:
        """
        Delete every job whose source or target is the item.

        Returns:
            Number of jobs deleted
        """
        job_ids = {job.id for job in self.job_repository.find_all_by_content(item.kind, item.id)}
        job_ids.update(job.id for job in self.job_repository.find_all_by_target_id(item.kind, item.id))
        if not job_ids:
            return 0

        deleted = self.job_repository.delete_by_ids(sorted(job_ids))
        self.logger.info(f"Cleaned up {deleted} jobs of deleted {item}")
        return deleted

    def record_content_change(self, item: ContentItem, changed_fields: Dict[str, str]) -> List[str]:
        """
        Queue translation of the changed fields of a source item.

        Items outside the default language and excluded items are ignored.

        Returns:
            The languages tasks were added for
        """
        if not changed_fields or self.content_provider.is_excluded(item):
            return []
        if self.content_provider.get_language(item) != self.language_manager.get_default_language():
            return []

        languages = self.language_manager.get_target_languages()
        for lang_to in languages:
            for reference, value in changed_fields.items():
                if value and isinstance(value, str):
                    self.collector.add_translation_task(item, lang_to, reference, value)

        self.logger.debug(f"{item} changed: {', '.join(changed_fields)} queued for {len(languages)} languages")
        return languages
