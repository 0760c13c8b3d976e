"""
Validation Utilities
====================
Functions for validating run requests.
"""
import re
from typing import Tuple, Optional, List, Iterable

_LANGUAGE_CODE = re.compile(r'^[a-z]{2,3}([_-][A-Za-z0-9]{2,8})?$')


def validate_language(lang_code: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a language code.

    Args:
        lang_code: The language code to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not lang_code:
        return False, "Language code is required"

    if not _LANGUAGE_CODE.match(lang_code):
        return False, f"Invalid language code: {lang_code}"

    return True, None


def validate_target_languages(
    lang_from: str,
    langs_to: Iterable[str]
) -> List[str]:
    """Validate the target languages of a run and return a list of errors."""
    errors = []
    langs_to = list(langs_to)
    if not langs_to:
        errors.append("At least one target language is required")
    for lang in langs_to:
        valid, error = validate_language(lang)
        if not valid:
            errors.append(error)
        elif lang == lang_from:
            errors.append(f"Target language {lang} equals the source language")
    if len(set(langs_to)) != len(langs_to):
        errors.append("Target languages contain duplicates")
    return errors


def validate_limit(limit: Optional[int]) -> Tuple[bool, Optional[str]]:
    """Validate an optional item limit."""
    if limit is None:
        return True, None
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        return False, "limit must be a positive integer"
    return True, None
