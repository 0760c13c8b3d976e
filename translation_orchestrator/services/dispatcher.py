"""
Job Dispatch
============
Hands run jobs to an asynchronous scheduler, one scheduler group per run so
a run's queued work can be counted and cancelled together.

Queued entries follow the job store: a job claimed directly by a worker or
finished by any other path leaves the queue, and jobs that recovery puts
back to pending are queued again.
"""
import threading
from collections import deque, OrderedDict
from typing import Optional, Tuple, Dict, Set

from translation_orchestrator.config.constants import JobStatus, RUN_GROUP_PREFIX
from translation_orchestrator.database import JobRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import Job, RecoveryResult
from translation_orchestrator.services.interfaces import Scheduler
from translation_orchestrator.utils.logging import get_logger


class InMemoryScheduler:
    """Thread-safe in-process scheduler with FIFO order per group."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Dict[str, deque] = OrderedDict()
        self._running: Dict[str, Set[int]] = {}

    def enqueue(self, job_id: int, group: str) -> None:
        """Queue a job; a job already queued or running in the group is ignored."""
        with self._lock:
            queued = self._pending.setdefault(group, deque())
            if job_id in queued or job_id in self._running.get(group, ()):
                return
            queued.append(job_id)

    def remove(self, job_id: int, group: str) -> bool:
        """Drop a queued entry. Returns False if the job was not queued."""
        with self._lock:
            queued = self._pending.get(group)
            if not queued or job_id not in queued:
                return False
            queued.remove(job_id)
            if not queued:
                del self._pending[group]
            return True

    def cancel_all(self, group: str) -> int:
        """Drop queued entries of a group; running entries are unaffected."""
        with self._lock:
            queued = self._pending.pop(group, None)
            return len(queued) if queued else 0

    def count_pending(self, group: str) -> int:
        with self._lock:
            return len(self._pending.get(group, ()))

    def count_running(self, group: str) -> int:
        with self._lock:
            return len(self._running.get(group, ()))

    def next(self) -> Optional[Tuple[str, int]]:
        """Take the oldest queued entry of the first non-empty group."""
        with self._lock:
            for group, queued in self._pending.items():
                if queued:
                    job_id = queued.popleft()
                    self._running.setdefault(group, set()).add(job_id)
                    return group, job_id
            return None

    def done(self, group: str, job_id: int) -> None:
        with self._lock:
            running = self._running.get(group)
            if running is not None:
                running.discard(job_id)
                if not running:
                    del self._running[group]


def group_for_run(run_id: int) -> str:
    return f"{RUN_GROUP_PREFIX}{run_id}"


class JobDispatcher:
    """Enqueues and cancels the scheduled work of runs."""

    def __init__(
        self,
        scheduler: Scheduler,
        job_repository: JobRepository,
        events: EventRegistry = None
    ):
        self.scheduler = scheduler
        self.job_repository = job_repository
        self.logger = get_logger().job_logger
        if events is not None:
            events.subscribe(LifecycleEvent.JOB_SAVED, self.on_job_saved)
            events.subscribe(LifecycleEvent.RECOVERY_COMPLETED, self.on_recovery_completed)

    def enqueue_run_jobs(self, run_id: int) -> int:
        """Queue every pending job of a run. Returns the number of pending jobs."""
        group = group_for_run(run_id)
        jobs = self.job_repository.find_by_run_and_statuses(run_id, (JobStatus.PENDING,))
        for job in jobs:
            self.scheduler.enqueue(job.id, group)
        if jobs:
            self.logger.info(f"Enqueued {len(jobs)} jobs of run {run_id}")
        return len(jobs)

    def discard_job(self, job: Job) -> bool:
        """Drop the queued entry of a job that no longer needs dispatching."""
        if job.run_id is None:
            return False
        return self.scheduler.remove(job.id, group_for_run(job.run_id))

    def on_job_saved(self, job: Job) -> None:
        if job.status != JobStatus.PENDING:
            self.discard_job(job)

    def on_recovery_completed(self, run_id: int, result: RecoveryResult) -> None:
        if result.reset:
            self.enqueue_run_jobs(run_id)

    def cancel_run_jobs(self, run_id: int) -> int:
        cancelled = self.scheduler.cancel_all(group_for_run(run_id))
        if cancelled:
            self.logger.info(f"Cancelled {cancelled} queued jobs of run {run_id}")
        return cancelled

    def pending_count(self, run_id: int) -> int:
        return self.scheduler.count_pending(group_for_run(run_id))

    def running_count(self, run_id: int) -> int:
        return self.scheduler.count_running(group_for_run(run_id))

    def has_active_jobs(self, run_id: int) -> bool:
        return self.pending_count(run_id) > 0 or self.running_count(run_id) > 0
