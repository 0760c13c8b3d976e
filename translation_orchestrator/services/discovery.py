"""
Coverage Discovery
==================
Periodic sweep that finds source language content lacking a job for some
target language and seeds the missing work.

A language counts as covered while a completed, pending or in-progress job
exists for it, so failed or cancelled work is discovered again. Each cycle
handles at most ``batch_size`` items per kind and stops after ``timeout``
seconds, leaving the remainder to the next cycle.
"""
import time
from typing import List, Optional, Callable

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.config.constants import ContentKind, DiscoveryState
from translation_orchestrator.database import JobRepository
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import ContentItem, DiscoveryCycleResult
from translation_orchestrator.services.interfaces import ContentProvider, LanguageManager
from translation_orchestrator.services.task_collection import TaskCollector
from translation_orchestrator.utils.logging import get_logger, debug_print

# Items whose coverage is counted per store query
_COVERAGE_CHUNK = 200


class DiscoveryService:
    """Finds under-covered content and creates jobs for it."""

    def __init__(
        self,
        job_repository: JobRepository,
        collector: TaskCollector,
        content_provider: ContentProvider,
        language_manager: LanguageManager,
        events: EventRegistry = None,
        config: Config = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.job_repository = job_repository
        self.collector = collector
        self.content_provider = content_provider
        self.language_manager = language_manager
        self.events = events
        self.config = config or default_config
        self.clock = clock
        self.logger = get_logger().discovery_logger
        self.state = DiscoveryState.NOT_STARTED

    # ----- queries --------------------------------------------------------

    def get_items_needing_jobs(self, kind: ContentKind, limit: Optional[int] = None) -> List[ContentItem]:
        """
        Source language items with fewer coverage jobs than target languages.

        Args:
            kind: Content kind to inspect
            limit: Maximum number of items to return (None for all)

        Returns:
            Items in ascending id order
        """
        lang_from = self.language_manager.get_default_language()
        langs_to = self.language_manager.get_target_languages()
        content_types = self.language_manager.get_active_content_types(kind)
        if not langs_to or not content_types:
            return []

        found: List[ContentItem] = []
        chunk: List[ContentItem] = []
        for item in self.content_provider.list_items(kind, lang_from, content_types):
            chunk.append(item)
            if len(chunk) < _COVERAGE_CHUNK:
                continue
            found.extend(self._uncovered(kind, chunk, lang_from, langs_to))
            chunk = []
            if limit is not None and len(found) >= limit:
                return found[:limit]

        if chunk:
            found.extend(self._uncovered(kind, chunk, lang_from, langs_to))
        return found[:limit] if limit is not None else found

    def _uncovered(
        self,
        kind: ContentKind,
        items: List[ContentItem],
        lang_from: str,
        langs_to: List[str]
    ) -> List[ContentItem]:
        counts = self.job_repository.count_coverage_by_source(
            kind, [item.id for item in items], lang_from, langs_to
        )
        return [item for item in items if counts.get(item.id, 0) < len(langs_to)]

    def check_discovery_needed(self) -> dict:
        """Cheap check whether any content still needs jobs."""
        has_documents = bool(self.get_items_needing_jobs(ContentKind.DOCUMENT, 1))
        has_terms = bool(self.get_items_needing_jobs(ContentKind.TERM, 1))
        needed = has_documents or has_terms
        return {
            'discovering': needed,
            'has_documents': has_documents,
            'has_terms': has_terms,
            'needed': needed,
        }

    # ----- cycle ----------------------------------------------------------

    def process_cycle(self) -> DiscoveryCycleResult:
        """
        Run one discovery cycle.

        Returns:
            Counts of items found and processed in this cycle
        """
        result = DiscoveryCycleResult()
        needed = self.check_discovery_needed()
        if not needed['needed']:
            self.state = DiscoveryState.READY
            return result

        self.state = DiscoveryState.DISCOVERING
        started = self.clock()
        batch_size = self.config.discovery.batch_size

        for kind, has_work in (
            (ContentKind.DOCUMENT, needed['has_documents']),
            (ContentKind.TERM, needed['has_terms']),
        ):
            if not has_work:
                continue
            items = self.get_items_needing_jobs(kind, batch_size)
            processed = 0
            for item in items:
                if self.clock() - started > self.config.discovery.timeout:
                    # Remaining items are picked up by the next cycle
                    result.timed_out = True
                    break
                result.jobs_created += self.process_item(item)
                processed += 1

            if kind == ContentKind.DOCUMENT:
                result.documents_found, result.documents_processed = len(items), processed
            else:
                result.terms_found, result.terms_processed = len(items), processed

            if result.timed_out:
                break

        if not result.timed_out and not self.check_discovery_needed()['needed']:
            self.state = DiscoveryState.READY

        if result.processed > 0:
            self.logger.info(
                f"Discovery cycle: {result.documents_processed}/{result.documents_found} documents, "
                f"{result.terms_processed}/{result.terms_found} terms, {result.jobs_created} jobs"
            )
            debug_print(f"🔍 Discovery created {result.jobs_created} jobs", 'INFO', 'DISCOVERY')
            if self.events:
                self.events.emit(LifecycleEvent.DISCOVERY_CYCLE_COMPLETED, result)

        return result

    def process_item(self, item: ContentItem) -> int:
        """
        Seed jobs for every uncovered target language of one item.

        Only items in the default language are considered. Existing
        translations are recorded as completed jobs; missing ones get a
        pending job with its field tasks.

        Returns:
            Number of jobs created
        """
        default_lang = self.language_manager.get_default_language()
        if self.content_provider.get_language(item) != default_lang:
            return 0

        created = 0
        for lang_to in self.language_manager.get_target_languages():
            if self.collector.has_job_for_language(item, lang_to):
                continue

            translation_id = self.content_provider.get_translation_link(item, lang_to)
            if translation_id:
                self.collector.create_completed_job(item, lang_to, translation_id)
            else:
                self.collector.create_pending_job(item, lang_to)
                self.collector.collect_tasks_for_languages(item, [lang_to])
            created += 1

        return created
