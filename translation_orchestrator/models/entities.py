"""
Orchestration Entities
======================
Run, Job and Task records and their state transitions.

Rows from the store are mapped through the explicit ``from_row`` builders.
"""
import time
from dataclasses import dataclass, field
from typing import Optional, Mapping, Any

from translation_orchestrator.config.constants import (
    ContentKind,
    JobStatus,
    RunStatus,
    TaskStatus,
    ISSUE_TRUNCATION_SUFFIX
)
from translation_orchestrator.models.run_config import RunConfig, ContentItem


def now_ts() -> int:
    """Current time as integer epoch seconds."""
    return int(time.time())


@dataclass
class Task:
    """One field of a content item translated into one language."""
    job_id: int
    reference: str
    value: str
    id: Optional[int] = None
    translation: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    issue: Optional[str] = None
    max_attempts: int = 3
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], max_attempts: int = 3) -> 'Task':
        return cls(
            id=row['id'],
            job_id=row['job_id'],
            reference=row['reference'],
            value=row['value'],
            translation=row['translation'],
            status=TaskStatus(row['status']),
            attempts=row['attempts'],
            issue=row['issue'],
            max_attempts=max_attempts,
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_exhausted(self) -> bool:
        """Failed with no attempts left and nothing translated; never retried."""
        return (
            self.status == TaskStatus.FAILED
            and self.attempts >= self.max_attempts
            and not self.translation
        )

    def is_pending_process(self) -> bool:
        """Whether the task still needs a translate call."""
        return not self.is_completed() and not self.is_exhausted()

    def complete(self, translation: str) -> None:
        self.translation = translation
        self.status = TaskStatus.COMPLETED
        self.issue = None

    def fail(self, issue: str, max_issue_length: int = 1000) -> None:
        """Record one failed attempt."""
        self.status = TaskStatus.FAILED
        self.set_issue(issue, max_issue_length)
        self.increment_attempts()

    def set_issue(self, issue: Optional[str], max_length: int = 1000) -> None:
        if issue is not None and len(issue) > max_length:
            issue = issue[:max_length] + ISSUE_TRUNCATION_SUFFIX
        self.issue = issue

    def increment_attempts(self) -> None:
        self.attempts += 1

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'job_id': self.job_id,
            'reference': self.reference,
            'value': self.value,
            'translation': self.translation,
            'status': self.status.value,
            'attempts': self.attempts,
            'issue': self.issue,
            'exhausted': self.is_exhausted(),
        }


@dataclass
class Job:
    """One content item translated into one target language."""
    type: ContentKind
    content_type: str
    id_from: int
    lang_from: str
    lang_to: str
    id: Optional[int] = None
    id_to: Optional[int] = None
    status: JobStatus = JobStatus.PENDING
    run_id: Optional[int] = None
    created_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Job':
        return cls(
            id=row['id'],
            type=ContentKind(row['type']),
            content_type=row['content_type'],
            id_from=row['id_from'],
            id_to=row['id_to'],
            lang_from=row['lang_from'],
            lang_to=row['lang_to'],
            status=JobStatus(row['status']),
            run_id=row['run_id'],
            created_at=row['created_at'],
            started_at=row['started_at'],
            completed_at=row['completed_at'],
        )

    def start(self) -> None:
        if self.started_at is None:
            self.started_at = now_ts()
        self.status = JobStatus.IN_PROGRESS

    def complete(self) -> None:
        self.status = JobStatus.COMPLETED
        self.completed_at = now_ts()

    def fail(self) -> None:
        self.status = JobStatus.FAILED
        self.completed_at = now_ts()

    def cancel(self) -> None:
        self.status = JobStatus.CANCELLED
        self.completed_at = now_ts()

    def reset(self) -> None:
        """Return the job to the queue with its start time cleared."""
        self.status = JobStatus.PENDING
        self.started_at = None
        self.completed_at = None

    def content_item(self) -> ContentItem:
        return ContentItem(self.type, self.id_from, self.content_type)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.type.value,
            'content_type': self.content_type,
            'id_from': self.id_from,
            'id_to': self.id_to,
            'lang_from': self.lang_from,
            'lang_to': self.lang_to,
            'status': self.status.value,
            'run_id': self.run_id,
            'created_at': self.created_at,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
        }


@dataclass
class Run:
    """A bulk translation campaign."""
    config: RunConfig
    id: Optional[int] = None
    status: RunStatus = RunStatus.PENDING
    created_at: Optional[int] = None
    started_at: Optional[int] = None
    last_heartbeat: Optional[int] = None
    completed_at: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Run':
        return cls(
            id=row['id'],
            config=RunConfig.from_json(row['config']),
            status=RunStatus(row['status']),
            created_at=row['created_at'],
            started_at=row['started_at'],
            last_heartbeat=row['last_heartbeat'],
            completed_at=row['completed_at'],
        )

    def start(self) -> None:
        now = now_ts()
        if self.started_at is None:
            self.started_at = now
        self.last_heartbeat = now
        self.status = RunStatus.RUNNING

    def update_heartbeat(self) -> None:
        self.last_heartbeat = now_ts()

    def is_stale(self, timeout: int, now: int = None) -> bool:
        """A running run whose last sign of life is older than timeout seconds."""
        if self.status != RunStatus.RUNNING:
            return False
        last_seen = self.last_heartbeat or self.started_at or self.created_at
        if last_seen is None:
            return False
        now = now if now is not None else now_ts()
        return last_seen < now - timeout

    def cancel(self) -> None:
        self.status = RunStatus.CANCELLED
        self.completed_at = now_ts()

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status.value,
            'config': self.config.to_dict(),
            'created_at': self.created_at,
            'started_at': self.started_at,
            'last_heartbeat': self.last_heartbeat,
            'completed_at': self.completed_at,
        }
