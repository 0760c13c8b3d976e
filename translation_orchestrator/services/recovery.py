"""
Stale Work Recovery
===================
Repairs jobs stuck in progress past a timeout, for example after a worker
crashed mid-task, and keeps long running runs from hanging forever.
"""
from typing import List, Optional

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.config.constants import (
    JobStatus,
    RecoveryStrategy,
    NON_TERMINAL_JOB_STATUSES,
    is_job_terminal,
    is_run_terminal
)
from translation_orchestrator.database import JobRepository, TaskRepository, RunRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import RecoveryResult, TaskStats, now_ts
from translation_orchestrator.services.completion import JobCompletionService
from translation_orchestrator.utils.logging import get_logger, debug_print


def choose_strategy(total: int, completed: int, exhausted: int) -> RecoveryStrategy:
    """
    Pick the repair for a stale job from its task counts.

    Any exhausted task fails the job. A job whose tasks all completed is
    finished. Everything else, including a job without tasks, goes back to
    the queue.
    """
    if exhausted > 0:
        return RecoveryStrategy.FAIL
    if total > 0 and completed == total:
        return RecoveryStrategy.FINISH
    return RecoveryStrategy.RESET


class RecoveryService:
    """Sweeps one run for stale in-progress jobs."""

    def __init__(
        self,
        job_repository: JobRepository,
        task_repository: TaskRepository,
        run_repository: RunRepository,
        completion: JobCompletionService,
        events: EventRegistry = None,
        config: Config = None
    ):
        self.job_repository = job_repository
        self.task_repository = task_repository
        self.run_repository = run_repository
        self.completion = completion
        self.events = events
        self.config = config or default_config
        self.logger = get_logger().recovery_logger

    def recover_stale_jobs_for_run(self, run_id: int, now: int = None) -> RecoveryResult:
        """
        Apply a repair strategy to every stale job of a run.

        A failure while repairing one job is logged and the sweep continues
        with the next one.

        Args:
            run_id: Run to sweep
            now: Reference time in epoch seconds (defaults to the current time)

        Returns:
            Counts of finished, reset and failed jobs
        """
        result = RecoveryResult()
        stale_ids = self.job_repository.find_stale_job_ids_for_run(
            run_id, self.config.recovery.stale_job_timeout, now
        )
        if not stale_ids:
            return result

        self.logger.info(f"Run {run_id}: recovering {len(stale_ids)} stale jobs")
        for job_id in stale_ids:
            try:
                strategy = self.recover_job(job_id)
            except Exception as e:
                self.logger.error(f"Recovery of job {job_id} failed: {e}", exc_info=True)
                continue
            if strategy is not None:
                result.record(strategy)

        # Direct failure writes skip the job-saved cascade
        if result.has_changes:
            try:
                self.run_repository.attempt_atomic_completion(run_id)
            except Exception as e:
                self.logger.error(f"Run {run_id} completion check failed: {e}", exc_info=True)
        if result.has_changes and self.events:
            self.events.emit(LifecycleEvent.RECOVERY_COMPLETED, run_id, result)

        self.logger.info(
            f"Run {run_id} recovery: {result.finished} finished, "
            f"{result.reset} reset, {result.failed} failed"
        )
        debug_print(f"🩹 Recovered {result.total} stale jobs in run {run_id}", 'INFO', 'RECOVERY')
        return result

    def recover_job(self, job_id: int) -> Optional[RecoveryStrategy]:
        """
        Repair a single stale job.

        Every write is conditional on the job still being in progress, so a
        worker that finishes the job between the stats read and the repair
        keeps its outcome.

        Returns:
            The strategy that was applied, or None if the job reached a
            terminal state before it could be repaired
        """
        job = self.job_repository.find(job_id)
        if is_job_terminal(job.status):
            return None

        stats: TaskStats = self.task_repository.get_stats_for_job(job_id)
        strategy = choose_strategy(stats.total, stats.completed, stats.exhausted)

        if strategy == RecoveryStrategy.FINISH:
            status = self.completion.finish(job)
            applied = status is not None
            if status == JobStatus.FAILED:
                strategy = RecoveryStrategy.FAIL
        elif strategy == RecoveryStrategy.FAIL:
            applied = self.job_repository.mark_failed(job_id)
        else:
            applied = self.job_repository.reset_to_pending(job_id)

        if not applied:
            self.logger.debug(f"Job {job_id} changed while recovering, left as is")
            return None

        self.logger.debug(
            f"Job {job_id} ({stats.completed}/{stats.total} done, "
            f"{stats.exhausted} exhausted) -> {strategy.value}"
        )
        return strategy

    def repair_inconsistent_jobs(self, run_id: int) -> List[int]:
        """Reset completed jobs of a run that still have unfinished tasks."""
        job_ids = [
            job_id for job_id in self.job_repository.find_inconsistent_completed_jobs(run_id)
            if self.job_repository.reset_to_pending(job_id, from_status=JobStatus.COMPLETED)
        ]
        if job_ids:
            self.logger.warning(f"Run {run_id}: reset {len(job_ids)} inconsistent completed jobs")
        return job_ids


class RunHealthMonitor:
    """Periodic check over all active runs."""

    def __init__(
        self,
        recovery: RecoveryService,
        job_repository: JobRepository,
        run_repository: RunRepository,
        events: EventRegistry = None,
        config: Config = None
    ):
        self.recovery = recovery
        self.job_repository = job_repository
        self.run_repository = run_repository
        self.events = events
        self.config = config or default_config
        self.logger = get_logger().recovery_logger

    def check_runs(self, now: int = None) -> RecoveryResult:
        """
        Recover stale jobs of every active run and settle stale runs.

        Completed jobs that still own unfinished tasks are put back to
        pending first and counted as reset.

        A run whose heartbeat is older than the stale run timeout is
        finalized when it has no pending or in-progress jobs left; otherwise
        its heartbeat is refreshed so it is not reported again immediately.

        Returns:
            Combined recovery counts across all runs
        """
        now = now if now is not None else now_ts()
        total = RecoveryResult()

        for run in self.run_repository.find_active_runs():
            try:
                repaired = self.recovery.repair_inconsistent_jobs(run.id)
                if repaired:
                    repair = RecoveryResult(reset=len(repaired))
                    total.merge(repair)
                    if self.events:
                        self.events.emit(LifecycleEvent.RECOVERY_COMPLETED, run.id, repair)

                result = self.recovery.recover_stale_jobs_for_run(run.id, now)
                total.merge(result)

                run = self.run_repository.find(run.id)
                if is_run_terminal(run.status) or not run.is_stale(
                    self.config.recovery.stale_run_timeout, now
                ):
                    continue

                active = self.job_repository.count_by_run_and_statuses(run.id, NON_TERMINAL_JOB_STATUSES)
                if active == 0:
                    if self.run_repository.attempt_atomic_completion(run.id):
                        self.logger.warning(f"Stale run {run.id} finalized")
                        if self.events:
                            self.events.emit(
                                LifecycleEvent.RUN_COMPLETED, self.run_repository.find(run.id)
                            )
                else:
                    self.run_repository.update_heartbeat(run.id)
                    self.logger.warning(f"Stale run {run.id} still has {active} active jobs")
            except Exception as e:
                self.logger.error(f"Health check of run {run.id} failed: {e}", exc_info=True)

        return total
