"""
Translation Orchestrator - Data Models
"""
from translation_orchestrator.models.entities import Task, Job, Run, now_ts
from translation_orchestrator.models.run_config import RunConfig, ContentItem
from translation_orchestrator.models.results import (
    TaskStats,
    TaskOutcome,
    RecoveryResult,
    DiscoveryCycleResult
)

__all__ = [
    "Task",
    "Job",
    "Run",
    "now_ts",
    "RunConfig",
    "ContentItem",
    "TaskStats",
    "TaskOutcome",
    "RecoveryResult",
    "DiscoveryCycleResult"
]
