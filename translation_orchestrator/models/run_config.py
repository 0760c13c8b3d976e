"""
Run Configuration Models
========================
Immutable configuration snapshot stored with every run, and content references.
"""
import json
from dataclasses import dataclass, field, asdict
from typing import Optional, List

from translation_orchestrator.config.constants import ContentKind
from translation_orchestrator.utils.validators import (
    validate_language,
    validate_target_languages,
    validate_limit
)


@dataclass(frozen=True)
class ContentItem:
    """Reference to one translatable item in the host content store."""
    kind: ContentKind
    id: int
    content_type: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass
class RunConfig:
    """
    Configuration snapshot of a translation run.

    A run either sweeps whole content types (document_types, term_groups)
    or targets specific items (specific_documents, specific_terms). When
    specific ids are present for a kind they take precedence over its
    content type filters.
    """
    lang_from: str
    langs_to: List[str]
    document_types: List[str] = field(default_factory=list)
    term_groups: List[str] = field(default_factory=list)
    specific_documents: List[int] = field(default_factory=list)
    specific_terms: List[int] = field(default_factory=list)
    instructions: str = ""
    forced: bool = False
    limit: Optional[int] = None

    def content_types_for(self, kind: ContentKind) -> List[str]:
        if kind == ContentKind.DOCUMENT:
            return list(self.document_types)
        return list(self.term_groups)

    def specific_ids_for(self, kind: ContentKind) -> List[int]:
        if kind == ContentKind.DOCUMENT:
            return list(self.specific_documents)
        return list(self.specific_terms)

    def has_work_for(self, kind: ContentKind) -> bool:
        """Whether the run selects any content of the given kind."""
        return bool(self.content_types_for(kind) or self.specific_ids_for(kind))

    def validate(self) -> List[str]:
        """Validate the configuration and return list of errors."""
        errors = []
        valid, error = validate_language(self.lang_from)
        if not valid:
            errors.append(error)
        errors.extend(validate_target_languages(self.lang_from, self.langs_to))
        valid, error = validate_limit(self.limit)
        if not valid:
            errors.append(error)
        if not any(self.has_work_for(kind) for kind in ContentKind):
            errors.append("Run selects no content: set content types or specific ids")
        return errors

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> 'RunConfig':
        return cls(
            lang_from=data.get('lang_from', ''),
            langs_to=list(data.get('langs_to', [])),
            document_types=list(data.get('document_types', [])),
            term_groups=list(data.get('term_groups', [])),
            specific_documents=[int(i) for i in data.get('specific_documents', [])],
            specific_terms=[int(i) for i in data.get('specific_terms', [])],
            instructions=data.get('instructions') or "",
            forced=bool(data.get('forced', False)),
            limit=data.get('limit'),
        )

    @classmethod
    def from_json(cls, raw: str) -> 'RunConfig':
        return cls.from_dict(json.loads(raw) if raw else {})
