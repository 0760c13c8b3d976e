"""
Translation Orchestrator - Utility Functions
"""
from translation_orchestrator.utils.text_processing import (
    truncate,
    sanitize_instructions,
    clean_translation_response
)
from translation_orchestrator.utils.validators import (
    validate_language,
    validate_target_languages,
    validate_limit
)
from translation_orchestrator.utils.logging import (
    ActivityLog,
    AppLogger,
    activity_log,
    get_logger,
    debug_print
)

__all__ = [
    "truncate",
    "sanitize_instructions",
    "clean_translation_response",
    "validate_language",
    "validate_target_languages",
    "validate_limit",
    "ActivityLog",
    "AppLogger",
    "activity_log",
    "get_logger",
    "debug_print"
]
