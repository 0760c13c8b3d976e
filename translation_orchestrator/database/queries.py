"""
Job Query Builder
=================
Composable filter for selecting jobs, always ordered by ascending id so
offset pagination over an unchanged result set is stable.
"""
from typing import List, Optional, Tuple, Iterable

from translation_orchestrator.config.constants import (
    ContentKind,
    JobStatus,
    INACTIVE_RUN_STATUSES,
    status_values
)
from translation_orchestrator.database.connection import placeholders


class JobQuery:
    """Fluent builder producing a parameterized SELECT over jobs."""

    def __init__(self, job_type: ContentKind):
        self.job_type = job_type
        self._lang_from: Optional[str] = None
        self._langs_to: List[str] = []
        self._statuses: List[JobStatus] = []
        self._ids_from: List[int] = []
        self._content_types: List[str] = []
        self._run_id: Optional[int] = None
        self._orphaned = False
        self._from_inactive_runs = False
        self._limit: Optional[int] = None
        self._offset = 0

    def lang_from(self, lang: str) -> 'JobQuery':
        self._lang_from = lang
        return self

    def langs_to(self, langs: Iterable[str]) -> 'JobQuery':
        self._langs_to = list(langs)
        return self

    def statuses(self, statuses: Iterable[JobStatus]) -> 'JobQuery':
        self._statuses = list(statuses)
        return self

    def ids_from(self, ids: Iterable[int]) -> 'JobQuery':
        self._ids_from = list(ids)
        return self

    def content_types(self, content_types: Iterable[str]) -> 'JobQuery':
        self._content_types = list(content_types)
        return self

    def run_id(self, run_id: int) -> 'JobQuery':
        self._run_id = run_id
        return self

    def include_orphaned(self) -> 'JobQuery':
        """Match jobs that belong to no run."""
        self._orphaned = True
        return self

    def include_from_inactive_runs(self) -> 'JobQuery':
        """Match jobs whose run is pending, failed or cancelled."""
        self._from_inactive_runs = True
        return self

    def limit(self, limit: int) -> 'JobQuery':
        self._limit = limit
        return self

    def offset(self, offset: int) -> 'JobQuery':
        self._offset = offset
        return self

    def build(self) -> Tuple[str, list]:
        """Return the SQL statement and its parameters."""
        where = ["j.type = ?"]
        params: list = [self.job_type.value]

        if self._lang_from:
            where.append("j.lang_from = ?")
            params.append(self._lang_from)

        for column, values in (
            ("j.lang_to", self._langs_to),
            ("j.status", status_values(self._statuses)),
            ("j.id_from", self._ids_from),
            ("j.content_type", self._content_types),
        ):
            if values:
                where.append(f"{column} IN ({placeholders(values)})")
                params.extend(values)

        if self._run_id is not None:
            where.append("j.run_id = ?")
            params.append(self._run_id)

        # Orphaned and inactive-run membership widen each other
        membership = []
        if self._orphaned:
            membership.append("j.run_id IS NULL")
        if self._from_inactive_runs:
            inactive = status_values(INACTIVE_RUN_STATUSES)
            membership.append(f"r.status IN ({placeholders(inactive)})")
            params.extend(inactive)
        if membership:
            where.append("(" + " OR ".join(membership) + ")")

        sql = (
            "SELECT j.* FROM jobs j "
            "LEFT JOIN runs r ON r.id = j.run_id "
            "WHERE " + " AND ".join(where) + " "
            "ORDER BY j.id ASC"
        )
        if self._limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([self._limit, self._offset])

        return sql, params
