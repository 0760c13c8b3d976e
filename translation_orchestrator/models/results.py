"""
Result Models
=============
Value objects returned by orchestration operations.
"""
from dataclasses import dataclass
from typing import Optional

from translation_orchestrator.config.constants import RecoveryStrategy


@dataclass
class TaskStats:
    """Task counts of one job, used to pick a recovery strategy."""
    total: int = 0
    completed: int = 0
    exhausted: int = 0


@dataclass
class TaskOutcome:
    """Result of one translate attempt: a translation or an error message."""
    translation: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        if (self.translation is None) == (self.error is None):
            raise ValueError("TaskOutcome needs exactly one of translation or error")

    @property
    def succeeded(self) -> bool:
        return self.translation is not None


@dataclass
class RecoveryResult:
    """Counts of stale jobs repaired by each strategy."""
    finished: int = 0
    reset: int = 0
    failed: int = 0

    def record(self, strategy: RecoveryStrategy) -> None:
        if strategy == RecoveryStrategy.FINISH:
            self.finished += 1
        elif strategy == RecoveryStrategy.RESET:
            self.reset += 1
        else:
            self.failed += 1

    def merge(self, other: 'RecoveryResult') -> None:
        self.finished += other.finished
        self.reset += other.reset
        self.failed += other.failed

    @property
    def total(self) -> int:
        return self.finished + self.reset + self.failed

    @property
    def has_changes(self) -> bool:
        return self.total > 0

    def to_dict(self) -> dict:
        return {
            'failed': self.failed,
            'finished': self.finished,
            'reset': self.reset,
            'total': self.total,
        }


@dataclass
class DiscoveryCycleResult:
    """Outcome of one discovery cycle."""
    documents_found: int = 0
    terms_found: int = 0
    documents_processed: int = 0
    terms_processed: int = 0
    jobs_created: int = 0
    timed_out: bool = False

    @property
    def processed(self) -> int:
        return self.documents_processed + self.terms_processed

    def to_dict(self) -> dict:
        return {
            'documents_found': self.documents_found,
            'terms_found': self.terms_found,
            'documents_processed': self.documents_processed,
            'terms_processed': self.terms_processed,
            'jobs_created': self.jobs_created,
            'timed_out': self.timed_out,
        }
