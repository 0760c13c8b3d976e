"""
Job Processor
=============
Translates the tasks of a claimed job and records each outcome.

Task failures are bookkeeping, not exceptions: a failed translate call
increments the task's attempts and stores the issue; once a task runs out of
attempts the cascade fails the job. Status changes of the job itself are
left to the cascade engine.
"""
import time
from typing import Callable, Dict, Any, Optional

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.config.constants import JobStatus, RunStatus
from translation_orchestrator.database import JobRepository, TaskRepository, RunRepository
from translation_orchestrator.exceptions import TranslationError
from translation_orchestrator.models import Job, Task, TaskOutcome
from translation_orchestrator.services.completion import JobCompletionService
from translation_orchestrator.services.interfaces import TranslateFunction
from translation_orchestrator.utils.logging import get_logger, debug_print


class JobProcessor:
    """Runs the translate function over a job's outstanding tasks."""

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        run_repository: RunRepository,
        completion: JobCompletionService,
        translate: TranslateFunction,
        config: Config = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.run_repository = run_repository
        self.completion = completion
        self.translate = translate
        self.config = config or default_config
        self.sleep = sleep
        self.logger = get_logger().job_logger

    # ----- outcome bookkeeping -------------------------------------------

    def save_task_outcome(self, task_id: int, outcome: TaskOutcome) -> Task:
        """
        Record one translate attempt for a task.

        A translation completes the task. An error marks it failed, stores
        the truncated issue and counts the attempt. The save triggers the
        job cascade.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        task = self.task_repository.find(task_id)
        self._apply_outcome(task, outcome)
        return task

    def _apply_outcome(self, task: Task, outcome: TaskOutcome) -> None:
        if outcome.succeeded:
            task.complete(outcome.translation)
        else:
            task.fail(outcome.error, self.config.translation.max_issue_length)
        self.task_repository.save(task)

    # ----- processing -----------------------------------------------------

    def process_job_id(self, job_id: int) -> Optional[Job]:
        """
        Process a job dispatched by id.

        The job is claimed with the same pending-to-in-progress guard as
        run claiming, so a job another worker already holds, or one that
        is terminal, is skipped.

        Returns:
            The job, or None if it could not be claimed
        """
        job = self.job_repository.claim_job(job_id)
        if job is None:
            self.logger.debug(f"Job {job_id} is not pending, skipping")
            return None
        if job.run_id is not None:
            self.run_repository.mark_running(job.run_id)
        self.process_job(job)
        return job

    def process_job(self, job: Job) -> None:
        """
        Translate every task of a job that is neither completed nor exhausted.

        Each task is retried in place until it completes or runs out of
        attempts. An exhausted task stops the job. Cancellation of the job or
        its run is checked between translate calls, so the call in flight is
        allowed to finish.
        """
        tasks = self.task_repository.find_by_job_id(job.id)
        if not tasks:
            # Nothing to translate; the source item had no fields
            self.completion.finish(job)
            return

        instructions = self._run_instructions(job)
        self.logger.info(f"Processing job {job.id}: {len(tasks)} tasks {job.lang_from} -> {job.lang_to}")

        for task in tasks:
            if not task.is_pending_process():
                continue
            if not self._process_task(job, task, instructions):
                break

    def _process_task(self, job: Job, task: Task, instructions: str) -> bool:
        """Returns False when processing of the job should stop."""
        context = self._build_context(job, task, instructions)
        while task.is_pending_process():
            if self._is_cancelled(job):
                self.logger.info(f"Job {job.id} cancelled, stopping")
                return False
            try:
                translation = self.translate(task.value, job.lang_from, job.lang_to, context)
                if not translation:
                    raise TranslationError("Translate function returned no text")
            except Exception as e:
                self._apply_outcome(task, TaskOutcome(error=str(e) or e.__class__.__name__))
                self.logger.warning(
                    f"Task {task.id} attempt {task.attempts}/{task.max_attempts} failed: {e}"
                )
                if task.is_exhausted():
                    debug_print(f"❌ Task {task.id} exhausted, job {job.id} failed", 'ERROR', 'JOB')
                    return False
                if self.config.translation.retry_delay > 0:
                    self.sleep(self.config.translation.retry_delay)
                continue
            self._apply_outcome(task, TaskOutcome(translation=translation))
        return True

    def _is_cancelled(self, job: Job) -> bool:
        current = self.job_repository.get(job.id)
        if current is None or current.status == JobStatus.CANCELLED:
            return True
        if current.run_id is not None:
            run = self.run_repository.get(current.run_id)
            if run is not None and run.status == RunStatus.CANCELLED:
                return True
        return False

    def _run_instructions(self, job: Job) -> str:
        if job.run_id is None:
            return ""
        run = self.run_repository.get(job.run_id)
        return run.config.instructions if run else ""

    @staticmethod
    def _build_context(job: Job, task: Task, instructions: str) -> Dict[str, Any]:
        return {
            'content_id': job.id_from,
            'content_type': job.content_type,
            'job_id': job.id,
            'task_id': task.id,
            'reference': task.reference,
            'instructions': instructions,
        }
