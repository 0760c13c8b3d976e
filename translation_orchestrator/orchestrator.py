"""
Translation Orchestrator
========================
Facade that wires the stores, the event registry, the cascade engine and
the services, and exposes the operations collaborators call.
"""
from typing import Any, Dict, List, Optional

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.database import (
    Database,
    TaskRepository,
    JobRepository,
    RunRepository,
    JobStatsRepository
)
from translation_orchestrator.events import EventRegistry
from translation_orchestrator.models import (
    ContentItem,
    Job,
    Run,
    RunConfig,
    Task,
    TaskOutcome,
    DiscoveryCycleResult,
    RecoveryResult
)
from translation_orchestrator.services import (
    ActivityRecorder,
    CascadeEngine,
    ContentCleanupService,
    ContentProvider,
    DiscoveryService,
    InMemoryScheduler,
    JobCompletionService,
    JobDispatcher,
    JobProcessor,
    LanguageManager,
    MemoryManager,
    OllamaTranslator,
    RecoveryService,
    RunConnector,
    RunHealthMonitor,
    RunService,
    Scheduler,
    SingleTranslationService,
    StaticLanguageManager,
    TaskCollector,
    TranslateFunction,
    Worker
)
from translation_orchestrator.utils.logging import get_logger


class Orchestrator:
    """
    Entry point of the orchestration engine.

    Only the content provider is required. The translate function defaults
    to the Ollama translator, the language topology to the configured
    languages, and the scheduler to an in-process queue.
    """

    def __init__(
        self,
        content_provider: ContentProvider,
        translate: TranslateFunction = None,
        language_manager: LanguageManager = None,
        scheduler: Scheduler = None,
        database: Database = None,
        config: Config = None,
        memory_manager: MemoryManager = None
    ):
        self.config = config or default_config
        self.logger = get_logger().app_logger
        self.content_provider = content_provider
        self.language_manager = language_manager or StaticLanguageManager(self.config)
        self.scheduler = scheduler or InMemoryScheduler()
        self.translate = translate or OllamaTranslator(config=self.config)

        self.db = (database or Database(config=self.config)).initialize()
        self.events = EventRegistry()
        self.activity = ActivityRecorder(self.events)

        # Stores
        self.task_repository = TaskRepository(self.db, self.events, self.config)
        self.job_repository = JobRepository(self.db, self.events)
        self.run_repository = RunRepository(self.db)
        self.stats_repository = JobStatsRepository(self.db)

        # Status propagation
        self.completion = JobCompletionService(
            self.job_repository, self.task_repository, content_provider, self.events
        )
        self.cascade = CascadeEngine(
            self.job_repository, self.task_repository, self.run_repository,
            self.completion, self.events
        )

        # Services
        self.collector = TaskCollector(self.job_repository, self.task_repository, content_provider)
        self.discovery = DiscoveryService(
            self.job_repository, self.collector, content_provider,
            self.language_manager, self.events, self.config
        )
        self.recovery = RecoveryService(
            self.job_repository, self.task_repository, self.run_repository,
            self.completion, self.events, self.config
        )
        self.health_monitor = RunHealthMonitor(
            self.recovery, self.job_repository, self.run_repository, self.events, self.config
        )
        self.dispatcher = JobDispatcher(self.scheduler, self.job_repository, self.events)
        self.connector = RunConnector(
            self.job_repository,
            memory_manager or MemoryManager(self.config),
            self.events,
            self.config
        )
        self.runs = RunService(
            self.run_repository, self.job_repository, self.stats_repository,
            self.connector, self.dispatcher, self.events
        )
        self.processor = JobProcessor(
            self.job_repository, self.task_repository, self.run_repository,
            self.completion, self.translate, self.config
        )
        self.single = SingleTranslationService(
            self.job_repository, self.task_repository, self.collector, self.runs,
            content_provider, self.language_manager, self.dispatcher
        )
        self.cleanup = ContentCleanupService(
            self.job_repository, self.collector, content_provider, self.language_manager
        )

        self.logger.info(f"Orchestrator ready (database: {self.db.db_path})")

    # ----- collaborator surface -------------------------------------------

    def create_run(self, run_config: RunConfig) -> int:
        """Create a run, connect its jobs and queue them. Returns the run id."""
        run = self.runs.create_run(run_config)
        self.dispatcher.enqueue_run_jobs(run.id)
        return run.id

    def cancel_run(self, run_id: int) -> Run:
        return self.runs.cancel_run(run_id)

    def claim_next_job(self, run_id: int) -> Optional[Job]:
        """Atomically claim the oldest pending job of a run, or None."""
        return self.runs.claim_next_job(run_id)

    def save_task_outcome(
        self,
        task_id: int,
        translation: Optional[str] = None,
        error: Optional[str] = None
    ) -> Task:
        """Record a translation or an error for a task."""
        return self.processor.save_task_outcome(task_id, TaskOutcome(translation, error))

    def run_discovery_cycle(self) -> DiscoveryCycleResult:
        return self.discovery.process_cycle()

    def recover_stale_jobs(self, run_id: int) -> Dict[str, int]:
        """Repair stale jobs of a run; returns finished, reset and failed counts."""
        self.run_repository.find(run_id)
        return self.recovery.recover_stale_jobs_for_run(run_id).to_dict()

    def get_run_progress(self, run_id: int) -> Dict[str, int]:
        return self.runs.get_progress(run_id)

    # ----- supporting operations ------------------------------------------

    def check_runs(self) -> RecoveryResult:
        """Periodic health check across all active runs."""
        return self.health_monitor.check_runs()

    def list_runs(self, limit: int = 100, offset: int = 0) -> List[Run]:
        return self.runs.list_runs(limit, offset)

    def get_waiting_stats(self, lang_from: str = None) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Pending and failed job counts per content type and target language."""
        return self.runs.get_waiting_stats(lang_from)

    def get_recent_activity(
        self,
        since_id: int = 0,
        event_type: str = None,
        run_id: int = None
    ) -> List[Dict[str, Any]]:
        """
        Activity log entries newer than since_id, oldest first.

        Poll with the id of the last entry seen to get only new entries.
        """
        return self.activity.recent(since_id, event_type, run_id)

    def process_job(self, job: Job) -> None:
        self.processor.process_job(job)

    def translate_item(self, item: ContentItem, target_languages, force: bool = False, instructions: str = None) -> int:
        return self.single.translate_item(item, list(target_languages), force, instructions)

    def set_exclusion(self, item: ContentItem, excluded: bool) -> List[int]:
        # One run recomputation per affected run instead of one per job
        with self.cascade.deferred():
            return self.single.set_exclusion(item, excluded)

    def content_deleted(self, item: ContentItem) -> int:
        return self.cleanup.cleanup_for_content(item)

    def content_changed(self, item: ContentItem, changed_fields: Dict[str, str]) -> List[str]:
        return self.cleanup.record_content_change(item, changed_fields)

    def create_worker(self, name: str = "worker") -> Worker:
        return Worker(self.runs, self.run_repository, self.processor, self.config, name)

    def close(self) -> None:
        self.db.close()
