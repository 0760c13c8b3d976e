"""
Single Item Translation
=======================
On-demand translation of one content item, outside the discovery cycle.

Each request becomes a small run restricted to the item so that it is
claimed, processed, cancelled and finalized exactly like a bulk run.
"""
from typing import List, Optional, Dict, Any

from translation_orchestrator.config.constants import ContentKind, JobStatus, TaskStatus
from translation_orchestrator.database import JobRepository, TaskRepository
from translation_orchestrator.exceptions import (
    ContentExcludedError,
    NothingToTranslateError,
    NoActiveTranslationError
)
from translation_orchestrator.models import ContentItem, Job, RunConfig, now_ts
from translation_orchestrator.services.dispatcher import JobDispatcher
from translation_orchestrator.services.interfaces import ContentProvider, LanguageManager
from translation_orchestrator.services.run_service import RunService
from translation_orchestrator.services.task_collection import TaskCollector
from translation_orchestrator.utils.logging import get_logger

# Window for the recent success and recent error flags
RECENT_WINDOW_SECONDS = 3600

# Latest job statuses that still leave a language to translate
_NEEDS_TRANSLATION_STATUSES = (JobStatus.PENDING, JobStatus.FAILED, JobStatus.CANCELLED)


class SingleTranslationService:
    """Translate, exclude, cancel and inspect a single item."""

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        collector: TaskCollector,
        run_service: RunService,
        content_provider: ContentProvider,
        language_manager: LanguageManager,
        dispatcher: JobDispatcher = None
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.collector = collector
        self.run_service = run_service
        self.content_provider = content_provider
        self.language_manager = language_manager
        self.dispatcher = dispatcher
        self.logger = get_logger().job_logger

    def _target_languages(self, lang_from: str) -> List[str]:
        """Every configured language except the item's own."""
        languages = [self.language_manager.get_default_language()]
        languages += self.language_manager.get_target_languages()
        seen = []
        for lang in languages:
            if lang != lang_from and lang not in seen:
                seen.append(lang)
        return seen

    # ----- translate ------------------------------------------------------

    def translate_item(
        self,
        item: ContentItem,
        target_languages: List[str],
        force: bool = False,
        instructions: Optional[str] = None
    ) -> int:
        """
        Create a run that translates one item into the given languages.

        Without force only languages still lacking a translation are
        collected, and at least one requested language must need work.
        With force tasks are collected for every requested language, even
        already translated ones.

        Returns:
            Id of the created run

        Raises:
            ContentExcludedError: If the item is excluded from translation
            NothingToTranslateError: If every language is already translated
        """
        if self.content_provider.is_excluded(item):
            raise ContentExcludedError(f"{item} is excluded from translation")

        lang_from = self.collector.source_language(item)
        if force:
            self.collector.collect_tasks_for_languages(item, target_languages, force=True)
        else:
            self.collector.collect_tasks_for_languages(item, self._target_languages(lang_from))
            self._ensure_languages_need_translation(item, lang_from, target_languages)

        run_config = RunConfig(
            lang_from=lang_from,
            langs_to=list(target_languages),
            specific_documents=[item.id] if item.kind == ContentKind.DOCUMENT else [],
            specific_terms=[item.id] if item.kind == ContentKind.TERM else [],
            instructions=instructions or "",
            forced=force,
        )
        run = self.run_service.create_run(run_config)
        if self.dispatcher:
            self.dispatcher.enqueue_run_jobs(run.id)

        self.logger.info(f"Single translation of {item} -> {', '.join(target_languages)}: run {run.id}")
        return run.id

    def _ensure_languages_need_translation(
        self,
        item: ContentItem,
        lang_from: str,
        target_languages: List[str]
    ) -> None:
        for lang_to in target_languages:
            latest = self.job_repository.find_latest_by_content_and_language(
                item.kind, item.id, lang_from, lang_to
            )
            if latest is None or latest.status in _NEEDS_TRANSLATION_STATUSES:
                return
        raise NothingToTranslateError(
            "All selected languages are already translated. Enable force mode to re-translate."
        )

    # ----- exclusion ------------------------------------------------------

    def set_exclusion(self, item: ContentItem, excluded: bool) -> List[int]:
        """
        Exclude an item from translation or include it again.

        Excluding cancels the latest pending job of each language.
        Including resets cancelled jobs to pending; failed jobs stay failed.

        Returns:
            Ids of the jobs whose status changed
        """
        self.content_provider.set_excluded(item, excluded)
        lang_from = self.collector.source_language(item)

        changed = []
        for lang_to in self._target_languages(lang_from):
            latest = self.job_repository.find_latest_by_content_and_language(
                item.kind, item.id, lang_from, lang_to
            )
            if latest is None:
                continue
            if excluded and latest.status == JobStatus.PENDING:
                latest.cancel()
            elif not excluded and latest.status == JobStatus.CANCELLED:
                latest.reset()
            else:
                continue
            self.job_repository.save(latest)
            changed.append(latest.id)

        self.logger.info(f"{item} {'excluded' if excluded else 'included'}, {len(changed)} jobs updated")
        return changed

    # ----- cancel ---------------------------------------------------------

    def cancel_active_translation(self, item: ContentItem) -> int:
        """
        Cancel the run currently translating the item.

        Returns:
            Id of the cancelled run

        Raises:
            NoActiveTranslationError: If no run is working on the item
        """
        active = next((
            job for job in self.job_repository.find_all_by_content(item.kind, item.id)
            if job.run_id is not None and (
                job.status == JobStatus.IN_PROGRESS or job.status == JobStatus.PENDING
            )
        ), None)
        if active is None:
            raise NoActiveTranslationError(f"No active translation found for {item}")

        self.run_service.cancel_run(active.run_id)
        return active.run_id

    # ----- status ---------------------------------------------------------

    def get_translation_status(self, item: ContentItem, target_languages: List[str] = None) -> Dict[str, Any]:
        """
        Per-language translation status of an item.

        A language is ``in_progress`` while its latest job runs, ``queued``
        while it waits in a run, ``translated`` once completed with an
        existing translation, otherwise the latest job status, or None when
        nothing is known.
        """
        lang_from = self.collector.source_language(item)
        languages = target_languages or self._target_languages(lang_from)
        all_jobs = self.job_repository.find_all_by_content(item.kind, item.id)

        status = {
            'is_discovered': bool(all_jobs),
            'is_excluded': self.content_provider.is_excluded(item),
            'languages': [self._language_status(item, lang_from, lang) for lang in languages],
        }
        status.update(self._timing_flags(all_jobs))
        return status

    def _language_status(self, item: ContentItem, lang_from: str, lang_to: str) -> Dict[str, Any]:
        latest = self.job_repository.find_latest_by_content_and_language(
            item.kind, item.id, lang_from, lang_to
        )
        translation_id = self.content_provider.get_translation_link(item, lang_to)

        entry: Dict[str, Any] = {
            'language': lang_to,
            'job_id': latest.id if latest else None,
            'run_id': latest.run_id if latest else None,
            'created_at': latest.created_at if latest else None,
            'translation_id': translation_id,
        }

        if latest and latest.status == JobStatus.IN_PROGRESS:
            entry['status'] = 'in_progress'
            entry['progress'] = self._progress(latest)
        elif latest and latest.status == JobStatus.PENDING and latest.run_id is not None:
            entry['status'] = 'queued'
        elif latest and latest.status == JobStatus.COMPLETED and translation_id:
            entry['status'] = 'translated'
            entry['translated_at'] = latest.completed_at
        elif latest:
            entry['status'] = latest.status.value
        elif translation_id:
            entry['status'] = 'translated'
            entry['translated_at'] = None
        else:
            entry['status'] = None

        if latest and latest.status == JobStatus.FAILED:
            entry.update(self._errors(latest))
        return entry

    def _progress(self, job: Job) -> Dict[str, int]:
        tasks = self.task_repository.find_by_job_id(job.id)
        return {
            'completed': sum(1 for task in tasks if task.is_completed()),
            'failed': sum(1 for task in tasks if task.status == TaskStatus.FAILED),
            'total': len(tasks),
        }

    def _errors(self, job: Job) -> Dict[str, Any]:
        failed = [
            task for task in self.task_repository.find_by_job_id(job.id)
            if task.status == TaskStatus.FAILED
        ]
        first_error = next((task.issue for task in failed if task.issue), None)
        return {'error_count': len(failed), 'first_error': first_error}

    @staticmethod
    def _timing_flags(jobs: List[Job]) -> Dict[str, bool]:
        recent = now_ts() - RECENT_WINDOW_SECONDS
        return {
            'has_active': any(job.status == JobStatus.IN_PROGRESS for job in jobs),
            'has_recent_error': any(
                job.status == JobStatus.FAILED and (job.created_at or 0) > recent for job in jobs
            ),
            'has_recent_success': any(
                job.status == JobStatus.COMPLETED and (job.created_at or 0) > recent for job in jobs
            ),
        }
