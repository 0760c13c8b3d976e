"""
Cascade Engine
==============
Recomputes parent status after a child is saved.

A saved task re-derives its job's status from the set of the job's tasks.
A saved job that belongs to a run finalizes the run once none of the run's
jobs is pending or in progress. Re-running either cascade on a terminal
parent changes nothing.
"""
import threading
from contextlib import contextmanager
from typing import Iterable, Optional

from translation_orchestrator.config.constants import (
    JobStatus,
    RunStatus,
    NON_TERMINAL_JOB_STATUSES,
    is_job_terminal,
    is_run_terminal
)
from translation_orchestrator.database import JobRepository, TaskRepository, RunRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import Task, Job
from translation_orchestrator.services.completion import JobCompletionService
from translation_orchestrator.utils.logging import get_logger


def derive_job_status(tasks: Iterable[Task]) -> Optional[JobStatus]:
    """
    Job status implied by its tasks.

    Any exhausted task fails the job, all completed tasks complete it,
    anything else means work is under way. Returns None for a job without
    tasks, which leaves its status unchanged.
    """
    tasks = list(tasks)
    if not tasks:
        return None
    if any(task.is_exhausted() for task in tasks):
        return JobStatus.FAILED
    if all(task.is_completed() for task in tasks):
        return JobStatus.COMPLETED
    return JobStatus.IN_PROGRESS


class CascadeEngine:
    """
    Subscribes to task and job saves and propagates status upwards.

    Cascade errors are logged and never reach the code that saved the child.
    """

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        run_repository: RunRepository,
        completion: JobCompletionService,
        events: EventRegistry
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.run_repository = run_repository
        self.completion = completion
        self.events = events
        self.logger = get_logger().job_logger
        self._local = threading.local()

        events.subscribe(LifecycleEvent.TASK_SAVED, self.on_task_saved)
        events.subscribe(LifecycleEvent.JOB_SAVED, self.on_job_saved)

    # ----- event handlers -------------------------------------------------

    def on_task_saved(self, task: Task) -> None:
        if task.job_id is None:
            return
        try:
            self.cascade_task_to_job(task.job_id)
        except Exception as e:
            self.logger.error(f"Cascade error (task->job, task {task.id}): {e}", exc_info=True)

    def on_job_saved(self, job: Job) -> None:
        if job.run_id is None:
            return

        pending = getattr(self._local, 'pending_runs', None)
        if pending is not None:
            pending.add(job.run_id)
            return

        self._safe_run_cascade(job.run_id)

    def _safe_run_cascade(self, run_id: int) -> None:
        try:
            self.cascade_job_to_run(run_id)
        except Exception as e:
            self.logger.error(f"Cascade error (job->run, run {run_id}): {e}", exc_info=True)

    @contextmanager
    def deferred(self):
        """
        Collect job-to-run cascades raised in this thread and run each
        affected run once when the outermost block exits.
        """
        outermost = getattr(self._local, 'pending_runs', None) is None
        if outermost:
            self._local.pending_runs = set()
        try:
            yield
        finally:
            if outermost:
                run_ids = self._local.pending_runs
                self._local.pending_runs = None
                for run_id in sorted(run_ids):
                    self._safe_run_cascade(run_id)

    # ----- cascades -------------------------------------------------------

    def cascade_task_to_job(self, job_id: int) -> JobStatus:
        """
        Re-derive and persist a job's status from its tasks.

        Returns:
            The job status after the cascade
        """
        job = self.job_repository.find(job_id)
        if is_job_terminal(job.status):
            return job.status

        new_status = derive_job_status(self.task_repository.find_by_job_id(job_id))
        if new_status is None or new_status == job.status:
            return job.status

        if new_status == JobStatus.COMPLETED:
            applied = self.completion.finish(job) is not None
        elif new_status == JobStatus.FAILED:
            applied = self.completion.fail(job)
        else:
            job.start()
            applied = self.job_repository.save_if_active(job)

        if not applied:
            # Another writer finalized the job first
            return self.job_repository.find(job_id).status

        self.logger.debug(f"Job {job_id} cascaded to {job.status.value}")
        return job.status

    def cascade_job_to_run(self, run_id: int) -> bool:
        """
        Finalize a run when none of its jobs remains active.

        Returns:
            True if this call completed or failed the run
        """
        run = self.run_repository.get(run_id)
        if run is None or is_run_terminal(run.status):
            return False

        active = self.job_repository.count_by_run_and_statuses(run_id, NON_TERMINAL_JOB_STATUSES)
        if active:
            if run.status == RunStatus.PENDING and self.job_repository.count_by_run_and_statuses(
                run_id, (JobStatus.IN_PROGRESS,)
            ):
                self.run_repository.mark_running(run_id)
            return False

        if not self.job_repository.count_by_run_and_statuses(run_id, tuple(JobStatus)):
            return False

        finalized = self.run_repository.attempt_atomic_completion(run_id)
        if finalized:
            self.events.emit(LifecycleEvent.RUN_COMPLETED, self.run_repository.find(run_id))
        return finalized
