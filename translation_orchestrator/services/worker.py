"""
Background Worker
=================
Polling loop that claims jobs from active runs and processes them.

Several workers may run against the same database; mutual exclusion comes
from the atomic claim, not from anything in this module.
"""
import threading
from typing import Optional

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.database import RunRepository
from translation_orchestrator.services.dispatcher import InMemoryScheduler
from translation_orchestrator.services.job_processor import JobProcessor
from translation_orchestrator.services.run_service import RunService
from translation_orchestrator.utils.logging import get_logger


class Worker:
    """Claims and processes one job at a time until stopped."""

    def __init__(
        self,
        run_service: RunService,
        run_repository: RunRepository,
        processor: JobProcessor,
        config: Config = None,
        name: str = "worker"
    ):
        self.run_service = run_service
        self.run_repository = run_repository
        self.processor = processor
        self.config = config or default_config
        self.name = name
        self.logger = get_logger().job_logger

    def work_once(self, run_id: int = None) -> Optional[int]:
        """
        Claim and process a single job.

        Args:
            run_id: Run to take work from; any active run when omitted

        Returns:
            Id of the processed job, or None if there was no work
        """
        run_ids = [run_id] if run_id is not None else [
            run.id for run in self.run_repository.find_active_runs()
        ]
        for candidate in run_ids:
            job = self.run_service.claim_next_job(candidate)
            if job is None:
                continue
            self.logger.debug(f"{self.name} claimed job {job.id} of run {candidate}")
            self.processor.process_job(job)
            return job.id
        return None

    def drain_scheduler_once(self, scheduler: InMemoryScheduler) -> Optional[int]:
        """Process the next job queued on an in-process scheduler."""
        entry = scheduler.next()
        if entry is None:
            return None
        group, job_id = entry
        try:
            self.processor.process_job_id(job_id)
        finally:
            scheduler.done(group, job_id)
        return job_id

    def run(self, stop_event: threading.Event, run_id: int = None) -> None:
        """Poll for work until stop_event is set."""
        self.logger.info(f"{self.name} started")
        while not stop_event.is_set():
            try:
                worked = self.work_once(run_id)
            except Exception as e:
                self.logger.error(f"{self.name} iteration failed: {e}", exc_info=True)
                stop_event.wait(self.config.worker.error_backoff)
                continue

            if worked is None:
                stop_event.wait(self.config.worker.poll_interval)
        self.logger.info(f"{self.name} stopped")
