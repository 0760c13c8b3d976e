"""
Run Connector
=============
Assigns matching jobs to a run in memory-bounded batches and computes run
statistics.

While a run is running its jobs are found by ``run_id``. For every other
status the matching set is re-derived from the run configuration: jobs of
the selected content types (or the specific items), between the run's
languages, that belong to no run or to an inactive run, and, unless the run
is forced, that are still processable.
"""
from typing import Dict, List, Optional

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.config.constants import (
    ContentKind,
    JobStatus,
    RunStatus,
    PROCESSABLE_JOB_STATUSES
)
from translation_orchestrator.database import JobRepository, JobQuery
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import Job, Run
from translation_orchestrator.services.memory import MemoryManager
from translation_orchestrator.utils.logging import get_logger, debug_print

STATS_KEYS = {
    ContentKind.DOCUMENT: 'documents',
    ContentKind.TERM: 'terms',
}


class JobQueryService:
    """Builds the job selection of a run for one content kind."""

    def __init__(self, kind: ContentKind, job_repository: JobRepository):
        self.kind = kind
        self.job_repository = job_repository

    def build_query(self, run: Run) -> JobQuery:
        query = self.job_repository.query(self.kind)
        if run.status == RunStatus.RUNNING:
            return query.run_id(run.id)

        run_config = run.config
        query.lang_from(run_config.lang_from).langs_to(run_config.langs_to)

        specific_ids = run_config.specific_ids_for(self.kind)
        if specific_ids:
            query.ids_from(specific_ids)
        else:
            query.content_types(run_config.content_types_for(self.kind))

        query.include_orphaned().include_from_inactive_runs()

        # Forced runs take every matching job, completed ones included
        if not run_config.forced:
            query.statuses(PROCESSABLE_JOB_STATUSES)
        return query

    def get_jobs_for_run(self, run: Run, offset: int = 0, limit: int = 1000) -> List[Job]:
        """One page of the run's jobs of this kind."""
        if not run.config.has_work_for(self.kind) and run.status != RunStatus.RUNNING:
            return []
        query = self.build_query(run).limit(limit).offset(offset)
        return self.job_repository.find_by(query)


class RunConnector:
    """Connects jobs to runs without loading the whole selection at once."""

    def __init__(
        self,
        job_repository: JobRepository,
        memory_manager: MemoryManager = None,
        events: EventRegistry = None,
        config: Config = None
    ):
        self.job_repository = job_repository
        self.config = config or default_config
        self.memory_manager = memory_manager or MemoryManager(self.config)
        self.events = events
        self.logger = get_logger().app_logger
        self.query_services = {
            kind: JobQueryService(kind, job_repository) for kind in ContentKind
        }

    @staticmethod
    def _has_reached_limit(limit: Optional[int], connected: int) -> bool:
        return limit is not None and connected >= limit

    def connect_jobs_to_run(self, run: Run) -> int:
        """
        Assign every matching job to the run, honoring its item limit.

        Each batch fetches one page per content kind at the current offset.
        The batch size halves while memory is close to the limit, never
        dropping below the configured minimum. Connection stops once the
        limit is reached or a batch connects nothing.

        Returns:
            Number of jobs connected
        """
        settings = self.config.run_connector
        batch_size = settings.batch_size
        limit = run.config.limit
        offset = 0
        connected = 0
        since_gc = 0

        while not self._has_reached_limit(limit, connected):
            if self.memory_manager.is_approaching_limit(settings.memory_threshold):
                usage = self.memory_manager.get_usage_bytes()
                batch_size = max(settings.batch_size_minimum, batch_size // 2)
                self.logger.warning(
                    f"Memory usage high ({usage} bytes) while connecting run {run.id}, "
                    f"batch size reduced to {batch_size}"
                )
                if self.events:
                    self.events.emit(LifecycleEvent.MEMORY_WARNING, run.id, usage, batch_size)

            batch_connected = 0
            for kind in ContentKind:
                remaining = batch_size if limit is None else min(batch_size, limit - connected - batch_connected)
                if remaining <= 0:
                    break
                jobs = self.query_services[kind].get_jobs_for_run(run, offset, remaining)
                if jobs:
                    batch_connected += self.job_repository.bulk_assign_to_run(
                        [job.id for job in jobs], run.id
                    )

            if batch_connected == 0:
                break

            connected += batch_connected
            offset += batch_size
            since_gc += batch_connected
            if since_gc >= settings.gc_interval:
                self.memory_manager.collect_garbage()
                since_gc = 0

        self.memory_manager.collect_garbage()
        self.logger.info(f"Connected {connected} jobs to run {run.id}")
        debug_print(f"🔗 Run {run.id}: {connected} jobs connected", 'INFO', 'RUN')
        return connected

    def get_stats(self, run: Run) -> Dict[str, Dict[str, Dict[str, Dict[str, int]]]]:
        """
        Job counts of a run per kind, target language and content type.

        Returns:
            ``{kind: {lang_to: {content_type: {status: count, 'total': n}}}}``
        """
        page_size = self.config.run_connector.stats_page_size
        stats: Dict[str, Dict[str, Dict[str, Dict[str, int]]]] = {
            key: {} for key in STATS_KEYS.values()
        }

        for kind, service in self.query_services.items():
            offset = 0
            while True:
                jobs = service.get_jobs_for_run(run, offset, page_size)
                for job in jobs:
                    counts = stats[STATS_KEYS[kind]].setdefault(job.lang_to, {}).setdefault(
                        job.content_type, {**{status.value: 0 for status in JobStatus}, 'total': 0}
                    )
                    counts[job.status.value] += 1
                    counts['total'] += 1
                if len(jobs) < page_size:
                    break
                offset += page_size

        return stats
