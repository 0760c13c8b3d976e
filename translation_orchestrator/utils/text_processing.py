"""
Text Processing Utilities
=========================
Functions for preparing prompts and cleaning model output.
"""
import re

from translation_orchestrator.config.constants import ISSUE_TRUNCATION_SUFFIX


_REASONING_TAGS = ('think', 'thinking', 'reasoning', 'reflection')

_ECHO_PATTERNS = [
    r'^IMPORTANT:\s*Return ONLY the translation[^\n]*\n*',
    r'^Return ONLY the translation[^\n]*\n*',
    r'^TEXT TO TRANSLATE:\s*\n+',
    r'^(Here is the |Here\'s the )?translation( is)?:\s*\n*',
    r'^Translation:\s*',
]


def truncate(text: str, max_length: int, suffix: str = ISSUE_TRUNCATION_SUFFIX) -> str:
    """Cut text to max_length characters, marking the cut with suffix."""
    if text is None or len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def sanitize_instructions(instructions: str, max_length: int = 500) -> str:
    """
    Make free-text run instructions safe to embed in a prompt.

    Strips markup and control characters and collapses whitespace.

    Args:
        instructions: User supplied instructions
        max_length: Maximum length kept

    Returns:
        Sanitized instructions, possibly empty
    """
    if not instructions:
        return ""
    text = re.sub(r'<[^>]*>', '', instructions)
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text[:max_length].strip()


def clean_translation_response(translation: str) -> str:
    """
    Clean the LLM response to remove unwanted content.
    Removes reasoning tags, instruction echoes and wrapping quotes.

    Args:
        translation: Raw translation from the model

    Returns:
        Cleaned translation
    """
    if not translation:
        return ""

    translation = translation.strip()

    for tag in _REASONING_TAGS:
        translation = re.sub(
            rf'<{tag}>.*?</{tag}>', '', translation, flags=re.DOTALL | re.IGNORECASE
        )
        # Unclosed tag when the model was cut off
        translation = re.sub(rf'<{tag}>.*$', '', translation, flags=re.DOTALL | re.IGNORECASE)

    translation = translation.strip()

    for pattern in _ECHO_PATTERNS:
        translation = re.sub(pattern, '', translation, flags=re.IGNORECASE)

    translation = translation.strip()

    if len(translation) >= 2 and translation[0] == translation[-1] and translation[0] in ('"', "'"):
        translation = translation[1:-1].strip()

    return translation
