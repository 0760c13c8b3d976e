"""
Orchestrator Exceptions
=======================
Errors raised across the store and service layers.

Task-level failures never leave the task boundary; job and run failures are
recorded as states. These exceptions cover lookups, collaborator failures and
rejected requests.
"""


class OrchestratorError(Exception):
    """Base class for orchestrator errors."""


class EntityNotFoundError(OrchestratorError):
    """A requested entity does not exist."""

    entity = "Entity"

    def __init__(self, entity_id: int):
        super().__init__(f"{self.entity} {entity_id} not found")
        self.entity_id = entity_id


class JobNotFoundError(EntityNotFoundError):
    entity = "Job"


class TaskNotFoundError(EntityNotFoundError):
    entity = "Task"


class RunNotFoundError(EntityNotFoundError):
    entity = "Run"


class MaterializationError(OrchestratorError):
    """The content provider could not apply translations to a target item."""

    def __init__(self, job_id: int, message: str):
        super().__init__(f"Materialization failed for job {job_id}: {message}")
        self.job_id = job_id


class TranslationError(OrchestratorError):
    """The translate function failed or returned an unusable result."""


class ContentExcludedError(OrchestratorError):
    """Translation was requested for an item excluded from translation."""


class NothingToTranslateError(OrchestratorError):
    """Every requested language is already covered."""


class InvalidRunConfigError(OrchestratorError):
    """A run configuration failed validation."""

    def __init__(self, errors):
        super().__init__("Invalid run configuration: " + "; ".join(errors))
        self.errors = list(errors)


class NoActiveTranslationError(OrchestratorError):
    """No run is currently translating the item."""
