"""
Translation Orchestrator - Configuration Module
"""
from translation_orchestrator.config.settings import Config, config
from translation_orchestrator.config.constants import (
    ContentKind,
    JobStatus,
    RunStatus,
    TaskStatus,
    RecoveryStrategy,
    DiscoveryState
)

__all__ = [
    "Config",
    "config",
    "ContentKind",
    "JobStatus",
    "RunStatus",
    "TaskStatus",
    "RecoveryStrategy",
    "DiscoveryState"
]
