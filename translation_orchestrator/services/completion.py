"""
Job Completion
==============
Turns a job whose tasks are all translated into a materialized target item.
Shared by the cascade engine and stale job recovery.

Terminal writes go through ``JobRepository.save_if_active``: when two paths
finish the same job (a worker's cascade and a recovery sweep), the first
write wins and the second is dropped.
"""
from typing import Dict, Optional

from translation_orchestrator.config.constants import JobStatus, is_job_terminal
from translation_orchestrator.database import JobRepository, TaskRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.exceptions import MaterializationError
from translation_orchestrator.models import Job
from translation_orchestrator.services.interfaces import ContentProvider
from translation_orchestrator.utils.logging import get_logger, debug_print


class JobCompletionService:
    """Materializes translations and finalizes the job as completed or failed."""

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        content_provider: ContentProvider,
        events: EventRegistry = None
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.content_provider = content_provider
        self.events = events
        self.logger = get_logger().job_logger

    def collect_translations(self, job: Job) -> Dict[str, str]:
        """Translated values of the job's completed tasks keyed by reference."""
        return {
            task.reference: task.translation
            for task in self.task_repository.find_by_job_id(job.id)
            if task.is_completed() and task.translation is not None
        }

    def finish(self, job: Job) -> Optional[JobStatus]:
        """
        Materialize the job's translations and mark it completed.

        If the content provider raises, the job is marked failed instead so
        no job is left completed without a target item.

        Args:
            job: Job whose tasks are all completed

        Returns:
            The status the job ended in, or None if the stored job was
            already terminal and nothing was written
        """
        if self._finalized_elsewhere(job):
            return None

        try:
            translations = self.collect_translations(job)
            id_to = self.content_provider.materialize_translation(
                job.content_item(), job.lang_to, translations
            )
        except Exception as e:
            error = MaterializationError(job.id, str(e))
            self.logger.error(str(error), exc_info=True)
            debug_print(f"❌ {error}", 'ERROR', 'COMPLETION')
            return JobStatus.FAILED if self.fail(job, error) else None

        job.id_to = id_to
        job.complete()
        if not self.job_repository.save_if_active(job):
            self.logger.warning(f"Job {job.id} was finalized concurrently; target {id_to} not recorded")
            return None

        self.logger.info(f"Job {job.id} completed -> {job.type.value}:{id_to} ({job.lang_to})")
        if self.events:
            self.events.emit(LifecycleEvent.JOB_COMPLETED, job)
        return JobStatus.COMPLETED

    def fail(self, job: Job, error: Exception = None) -> bool:
        """
        Mark the job failed through the regular save path.

        Returns:
            False if the stored job was already terminal
        """
        job.fail()
        if not self.job_repository.save_if_active(job):
            self.logger.debug(f"Job {job.id} already terminal, failure not recorded")
            return False
        self.logger.warning(f"Job {job.id} failed")
        if self.events:
            self.events.emit(LifecycleEvent.JOB_FAILED, job, error)
        return True

    def _finalized_elsewhere(self, job: Job) -> bool:
        current = self.job_repository.get(job.id)
        if current is None or is_job_terminal(current.status):
            self.logger.debug(f"Job {job.id} already terminal, skipping completion")
            return True
        return False
