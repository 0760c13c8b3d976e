"""
Translation Orchestrator - Services
"""
from translation_orchestrator.services.interfaces import (
    ContentProvider,
    LanguageManager,
    TranslateFunction,
    Scheduler,
    StaticLanguageManager
)
from translation_orchestrator.services.completion import JobCompletionService
from translation_orchestrator.services.cascade import CascadeEngine, derive_job_status
from translation_orchestrator.services.task_collection import TaskCollector
from translation_orchestrator.services.discovery import DiscoveryService
from translation_orchestrator.services.recovery import (
    RecoveryService,
    RunHealthMonitor,
    choose_strategy
)
from translation_orchestrator.services.memory import MemoryManager
from translation_orchestrator.services.run_connector import RunConnector, JobQueryService
from translation_orchestrator.services.dispatcher import (
    InMemoryScheduler,
    JobDispatcher,
    group_for_run
)
from translation_orchestrator.services.run_service import RunService
from translation_orchestrator.services.ollama_client import OllamaClient, OllamaResponse
from translation_orchestrator.services.translator import OllamaTranslator
from translation_orchestrator.services.job_processor import JobProcessor
from translation_orchestrator.services.worker import Worker
from translation_orchestrator.services.single_translation import SingleTranslationService
from translation_orchestrator.services.cleanup import ContentCleanupService
from translation_orchestrator.services.activity import ActivityRecorder

__all__ = [
    "ContentProvider",
    "LanguageManager",
    "TranslateFunction",
    "Scheduler",
    "StaticLanguageManager",
    "JobCompletionService",
    "CascadeEngine",
    "derive_job_status",
    "TaskCollector",
    "DiscoveryService",
    "RecoveryService",
    "RunHealthMonitor",
    "choose_strategy",
    "MemoryManager",
    "RunConnector",
    "JobQueryService",
    "InMemoryScheduler",
    "JobDispatcher",
    "group_for_run",
    "RunService",
    "OllamaClient",
    "OllamaResponse",
    "OllamaTranslator",
    "JobProcessor",
    "Worker",
    "SingleTranslationService",
    "ContentCleanupService",
    "ActivityRecorder"
]
