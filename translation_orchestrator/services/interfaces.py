"""
Collaborator Interfaces
=======================
Protocols for the host content store, the language topology, the translate
function and the asynchronous scheduler. The orchestrator depends only on
these shapes, never on a concrete implementation.
"""
from typing import Protocol, Optional, Dict, List, Iterable, Any, runtime_checkable

from translation_orchestrator.config import Config
from translation_orchestrator.config.constants import ContentKind
from translation_orchestrator.models import ContentItem


@runtime_checkable
class ContentProvider(Protocol):
    """Access to translatable items in the host content store."""

    def get_language(self, item: ContentItem) -> Optional[str]:
        """Language code of the item, or None if it has none."""
        ...

    def get_translation_link(self, item: ContentItem, lang: str) -> Optional[int]:
        """Id of the existing translation of item in lang, if any."""
        ...

    def get_fields(self, item: ContentItem) -> Dict[str, str]:
        """Translatable fields of the item keyed by reference."""
        ...

    def materialize_translation(
        self,
        item: ContentItem,
        lang: str,
        translations: Dict[str, str]
    ) -> int:
        """Create or update the translated item and return its id. May raise."""
        ...

    def list_items(
        self,
        kind: ContentKind,
        language: str,
        content_types: List[str]
    ) -> Iterable[ContentItem]:
        """Eligible items of a kind in a language, in ascending id order."""
        ...

    def get_item(self, kind: ContentKind, item_id: int) -> Optional[ContentItem]:
        ...

    def is_excluded(self, item: ContentItem) -> bool:
        ...

    def set_excluded(self, item: ContentItem, excluded: bool) -> None:
        ...


@runtime_checkable
class LanguageManager(Protocol):
    """Languages and content types the installation translates."""

    def get_default_language(self) -> str:
        ...

    def get_target_languages(self) -> List[str]:
        ...

    def get_active_content_types(self, kind: ContentKind) -> List[str]:
        ...


class TranslateFunction(Protocol):
    """Synchronous translate call. May raise on transient or permanent errors."""

    def __call__(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        context: Dict[str, Any]
    ) -> str:
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Minimal asynchronous job queue."""

    def enqueue(self, job_id: int, group: str) -> None:
        ...

    def remove(self, job_id: int, group: str) -> bool:
        ...

    def cancel_all(self, group: str) -> int:
        ...

    def count_pending(self, group: str) -> int:
        ...

    def count_running(self, group: str) -> int:
        ...


class StaticLanguageManager:
    """Language topology read from the orchestrator configuration."""

    def __init__(self, config: Config):
        self.languages = config.languages

    def get_default_language(self) -> str:
        return self.languages.default_language

    def get_target_languages(self) -> List[str]:
        default = self.get_default_language()
        return [lang for lang in self.languages.target_languages if lang != default]

    def get_active_content_types(self, kind: ContentKind) -> List[str]:
        if kind == ContentKind.DOCUMENT:
            return list(self.languages.document_types)
        return list(self.languages.term_groups)
