"""
Shared fixtures: temporary store, in-memory content provider and a
scriptable translate function.
"""
import os
import sys
import tempfile

import pytest

# Setup test environment before the package reads its configuration
os.environ.setdefault('VERBOSE_DEBUG', 'false')
os.environ.setdefault('ORCHESTRATOR_LOG_DIR', tempfile.mkdtemp(prefix='orchestrator-logs-'))

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from translation_orchestrator.config import Config, ContentKind
from translation_orchestrator.database import Database
from translation_orchestrator.models import ContentItem, RunConfig


class FakeContentProvider:
    """Content store kept in dictionaries."""

    def __init__(self):
        self.items = {}
        self.excluded = set()
        self.materialized = []
        self.fail_materialize = False
        self._next_id = 1000

    def add_item(self, kind, item_id, language='en', content_type='post', fields=None, links=None):
        item = ContentItem(kind, item_id, content_type)
        if fields is None:
            fields = {'title': f'Title {item_id}', 'content': f'Content {item_id}'}
        self.items[(kind, item_id)] = {
            'item': item,
            'language': language,
            'fields': dict(fields),
            'links': dict(links or {}),
        }
        return item

    def add_document(self, item_id, **kwargs):
        return self.add_item(ContentKind.DOCUMENT, item_id, **kwargs)

    def add_term(self, item_id, content_type='category', **kwargs):
        return self.add_item(ContentKind.TERM, item_id, content_type=content_type, **kwargs)

    def _record(self, item):
        return self.items[(item.kind, item.id)]

    def get_language(self, item):
        record = self.items.get((item.kind, item.id))
        return record['language'] if record else None

    def get_translation_link(self, item, lang):
        record = self.items.get((item.kind, item.id))
        return record['links'].get(lang) if record else None

    def get_fields(self, item):
        return dict(self._record(item)['fields'])

    def materialize_translation(self, item, lang, translations):
        if self.fail_materialize:
            raise RuntimeError("content store unavailable")
        record = self._record(item)
        target_id = record['links'].get(lang)
        if target_id is None:
            self._next_id += 1
            target_id = self._next_id
            record['links'][lang] = target_id
        self.materialized.append((item, lang, dict(translations)))
        return target_id

    def list_items(self, kind, language, content_types):
        records = sorted(
            (record for (record_kind, _), record in self.items.items() if record_kind == kind),
            key=lambda record: record['item'].id
        )
        for record in records:
            if record['language'] == language and record['item'].content_type in content_types:
                yield record['item']

    def get_item(self, kind, item_id):
        record = self.items.get((kind, item_id))
        return record['item'] if record else None

    def is_excluded(self, item):
        return (item.kind, item.id) in self.excluded

    def set_excluded(self, item, excluded):
        if excluded:
            self.excluded.add((item.kind, item.id))
        else:
            self.excluded.discard((item.kind, item.id))


class FakeTranslator:
    """Translate function that prefixes the target language; listed values always fail."""

    def __init__(self):
        self.calls = []
        self.failing = set()

    def __call__(self, text, source_lang, target_lang, context):
        self.calls.append((text, source_lang, target_lang, dict(context)))
        if text in self.failing:
            raise RuntimeError(f"cannot translate {text!r}")
        return f"[{target_lang}] {text}"


class FakeMemoryManager:
    """Memory probe whose pressure is switched on by the test."""

    def __init__(self, approaching=False, usage=512 * 1024 * 1024):
        self.approaching = approaching
        self.usage = usage
        self.gc_calls = 0

    def is_approaching_limit(self, threshold=None):
        return self.approaching

    def get_usage_bytes(self):
        return self.usage

    def collect_garbage(self):
        self.gc_calls += 1
        return 0


@pytest.fixture
def config(tmp_path):
    cfg = Config()
    cfg.database.db_path = str(tmp_path / 'orchestrator.db')
    cfg.languages.default_language = 'en'
    cfg.languages.target_languages = ['es', 'fr']
    cfg.languages.document_types = ['post', 'page']
    cfg.languages.term_groups = ['category']
    cfg.translation.retry_delay = 0
    cfg.worker.poll_interval = 0.01
    cfg.worker.error_backoff = 0.01
    return cfg


@pytest.fixture
def database(config):
    db = Database(config=config).initialize()
    yield db
    db.close()


@pytest.fixture
def provider():
    return FakeContentProvider()


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def memory_manager():
    return FakeMemoryManager()


@pytest.fixture
def orchestrator(provider, translator, database, config, memory_manager):
    from translation_orchestrator import Orchestrator

    orch = Orchestrator(
        content_provider=provider,
        translate=translator,
        database=database,
        config=config,
        memory_manager=memory_manager
    )
    yield orch
    orch.close()


@pytest.fixture
def three_documents(provider):
    """Three source documents without translations."""
    return [provider.add_document(item_id) for item_id in (1, 2, 3)]


@pytest.fixture
def document_run_config():
    def factory(**overrides):
        values = {'lang_from': 'en', 'langs_to': ['es', 'fr'], 'document_types': ['post']}
        values.update(overrides)
        return RunConfig(**values)
    return factory
