"""
Constants and Enums for the Translation Orchestrator
"""
from enum import Enum
from typing import Optional


class ContentKind(str, Enum):
    """The two kinds of translatable content a job can refer to."""
    DOCUMENT = "document"
    TERM = "term"


class JobStatus(str, Enum):
    """Status of a per-item, per-language translation job."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    """Status of a bulk translation run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    """Status of a single field translation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class RecoveryStrategy(str, Enum):
    """Repair applied to a stale job."""
    FINISH = "finish"
    FAIL = "fail"
    RESET = "reset"


class DiscoveryState(str, Enum):
    """Coarse state of the coverage discovery sweep."""
    NOT_STARTED = "not_started"
    DISCOVERING = "discovering"
    READY = "ready"

    @property
    def message(self) -> str:
        return _DISCOVERY_MESSAGES[self]


_DISCOVERY_MESSAGES = {
    DiscoveryState.NOT_STARTED: "Content discovery pending.",
    DiscoveryState.DISCOVERING: "Discovering content that needs translation.",
    DiscoveryState.READY: "System is ready for translation runs.",
}


# Status groups
PROCESSABLE_JOB_STATUSES = (JobStatus.PENDING,)
COVERAGE_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.PENDING, JobStatus.IN_PROGRESS)
TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)
NON_TERMINAL_JOB_STATUSES = (JobStatus.PENDING, JobStatus.IN_PROGRESS)
TERMINAL_RUN_STATUSES = (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)
ACTIVE_RUN_STATUSES = (RunStatus.PENDING, RunStatus.RUNNING)
INACTIVE_RUN_STATUSES = (RunStatus.PENDING, RunStatus.FAILED, RunStatus.CANCELLED)


def is_processable(status: JobStatus) -> bool:
    """Jobs a worker may pick up. Failed jobs are never retried automatically."""
    return status in PROCESSABLE_JOB_STATUSES


def is_coverage_status(status: JobStatus) -> bool:
    """Whether a job in this status counts as covering its target language."""
    return status in COVERAGE_JOB_STATUSES


def is_job_terminal(status: JobStatus) -> bool:
    return status in TERMINAL_JOB_STATUSES


def is_run_terminal(status: RunStatus) -> bool:
    return status in TERMINAL_RUN_STATUSES


def is_run_inactive(status: RunStatus) -> bool:
    """Runs that are not completed and not running; their jobs may be reconnected."""
    return status in INACTIVE_RUN_STATUSES


def final_run_status(job_statuses) -> Optional[RunStatus]:
    """
    Final status of a run given its job statuses, or None while any job is
    still pending or in progress. A run with a failed job fails.
    """
    statuses = list(job_statuses)
    if any(status in NON_TERMINAL_JOB_STATUSES for status in statuses):
        return None
    if JobStatus.FAILED in statuses:
        return RunStatus.FAILED
    return RunStatus.COMPLETED


def status_values(statuses) -> list:
    """Plain string values for use as SQL parameters."""
    return [s.value if isinstance(s, Enum) else s for s in statuses]


ISSUE_TRUNCATION_SUFFIX = "... [truncated]"

# Scheduler group prefix for jobs dispatched on behalf of a run
RUN_GROUP_PREFIX = "run-"
