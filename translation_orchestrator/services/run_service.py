"""
Run Service
===========
Lifecycle of translation runs: creation with job connection, claiming,
cancellation, completion, deletion and progress reporting.
"""
from typing import Dict, List, Optional

from translation_orchestrator.config.constants import (
    NON_TERMINAL_JOB_STATUSES,
    is_run_terminal
)
from translation_orchestrator.database import JobRepository, RunRepository, JobStatsRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.exceptions import InvalidRunConfigError
from translation_orchestrator.models import Job, Run, RunConfig
from translation_orchestrator.services.dispatcher import JobDispatcher
from translation_orchestrator.services.run_connector import RunConnector
from translation_orchestrator.utils.logging import get_logger, debug_print


class RunService:
    """Creates, drives and finalizes runs."""

    def __init__(
        self,
        run_repository: RunRepository,
        job_repository: JobRepository,
        stats_repository: JobStatsRepository,
        connector: RunConnector,
        dispatcher: JobDispatcher = None,
        events: EventRegistry = None
    ):
        self.run_repository = run_repository
        self.job_repository = job_repository
        self.stats_repository = stats_repository
        self.connector = connector
        self.dispatcher = dispatcher
        self.events = events
        self.logger = get_logger().app_logger

    def create_run(self, run_config: RunConfig) -> Run:
        """
        Create a run and connect its matching jobs.

        A run that ends up without pending or in-progress jobs is finalized
        right away, so it never waits for work that will not come.

        Raises:
            InvalidRunConfigError: If the configuration does not validate
        """
        errors = run_config.validate()
        if errors:
            raise InvalidRunConfigError(errors)

        run = self.run_repository.create(run_config)
        connected = self.connector.connect_jobs_to_run(run)

        self.logger.info(
            f"Run {run.id} created: {run_config.lang_from} -> {', '.join(run_config.langs_to)}, "
            f"{connected} jobs"
        )
        debug_print(f"🚀 Run {run.id} created with {connected} jobs", 'INFO', 'RUN')
        if self.events:
            self.events.emit(LifecycleEvent.RUN_CREATED, run, connected)

        if self.job_repository.count_by_run_and_statuses(run.id, NON_TERMINAL_JOB_STATUSES) == 0:
            self.complete_run(run.id)
        return self.run_repository.find(run.id)

    def claim_next_job(self, run_id: int) -> Optional[Job]:
        """
        Claim the oldest pending job of a run for processing.

        The first claim moves a pending run to running; every claim
        refreshes the run heartbeat. Returns None when there is no work.
        """
        run = self.run_repository.find(run_id)
        if is_run_terminal(run.status):
            return None

        job = self.job_repository.claim_next_job_for_run(run_id)
        if job is not None:
            self.run_repository.mark_running(run_id)
            if self.dispatcher:
                self.dispatcher.discard_job(job)
        return job

    def cancel_run(self, run_id: int) -> Run:
        """
        Cancel a run and its pending and in-progress jobs.

        Workers notice the cancellation on their next check; a translate
        call already in flight is allowed to finish. Cancelling a run that
        is already terminal changes nothing.
        """
        run = self.run_repository.find(run_id)
        if is_run_terminal(run.status):
            return run

        run.cancel()
        self.run_repository.save(run)
        cancelled_jobs = self.job_repository.cancel_non_terminal_for_run(run_id)
        if self.dispatcher:
            self.dispatcher.cancel_run_jobs(run_id)

        self.logger.info(f"Run {run_id} cancelled ({cancelled_jobs} jobs)")
        if self.events:
            self.events.emit(LifecycleEvent.RUN_CANCELLED, run)
        return run

    def delete_run(self, run_id: int) -> bool:
        """Delete a run. Its jobs are kept and become orphaned."""
        run = self.run_repository.find(run_id)
        if self.dispatcher:
            self.dispatcher.cancel_run_jobs(run_id)
        deleted = self.run_repository.delete(run)
        if deleted and self.events:
            self.events.emit(LifecycleEvent.RUN_DELETED, run)
        return deleted

    def complete_run(self, run_id: int) -> bool:
        """
        Finalize a run atomically.

        Returns:
            True if this call finalized the run, False if it was already
            terminal or still has active jobs
        """
        completed = self.run_repository.attempt_atomic_completion(run_id)
        if completed and self.events:
            self.events.emit(LifecycleEvent.RUN_COMPLETED, self.run_repository.find(run_id))
        return completed

    def get_stats(self, run_id: int) -> Dict[str, Dict[str, Dict[str, Dict[str, int]]]]:
        return self.connector.get_stats(self.run_repository.find(run_id))

    def get_progress(self, run_id: int) -> Dict[str, int]:
        """Job counts by status plus total."""
        self.run_repository.find(run_id)
        return self.stats_repository.get_run_progress(run_id)

    def list_runs(self, limit: int = 100, offset: int = 0) -> List[Run]:
        """Runs, newest first."""
        return self.run_repository.find_all(limit, offset)

    def get_waiting_stats(self, lang_from: str = None) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Pending and failed job counts per content type and target language."""
        return self.stats_repository.get_waiting_stats(lang_from)
