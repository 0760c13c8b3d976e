"""
Tests for run creation and batch job assignment
"""
import pytest

from translation_orchestrator.config import ContentKind, JobStatus, RunStatus
from translation_orchestrator.events import LifecycleEvent
from translation_orchestrator.exceptions import InvalidRunConfigError


def _run_jobs(orchestrator, run_id):
    return orchestrator.job_repository.find_all_by_run_id(run_id)


class TestConnectJobs:
    """Test which jobs a new run picks up."""

    def test_connects_pending_jobs_of_selected_languages(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config(langs_to=['fr']))

        jobs = _run_jobs(orchestrator, run_id)
        assert len(jobs) == 3
        assert {job.lang_to for job in jobs} == {'fr'}
        assert orchestrator.run_repository.find(run_id).status == RunStatus.PENDING

    def test_limit_caps_connected_jobs(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config(limit=4))
        assert len(_run_jobs(orchestrator, run_id)) == 4

    def test_specific_items(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config(document_types=[], specific_documents=[2]))

        jobs = _run_jobs(orchestrator, run_id)
        assert {job.id_from for job in jobs} == {2}
        assert len(jobs) == 2

    def test_content_type_filter(self, orchestrator, provider, document_run_config):
        provider.add_document(1, content_type='post')
        provider.add_document(2, content_type='page')
        orchestrator.run_discovery_cycle()

        run_id = orchestrator.create_run(document_run_config(document_types=['page']))
        assert {job.id_from for job in _run_jobs(orchestrator, run_id)} == {2}

    def test_terms_and_documents_together(self, orchestrator, provider, document_run_config):
        provider.add_document(1)
        provider.add_term(5)
        orchestrator.run_discovery_cycle()

        run_id = orchestrator.create_run(document_run_config(term_groups=['category']))
        kinds = [job.type for job in _run_jobs(orchestrator, run_id)]
        assert kinds.count(ContentKind.DOCUMENT) == 2
        assert kinds.count(ContentKind.TERM) == 2

    def test_running_run_jobs_are_not_taken(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        first = orchestrator.create_run(document_run_config())
        orchestrator.claim_next_job(first)

        second = orchestrator.create_run(document_run_config())
        assert _run_jobs(orchestrator, second) == []
        assert len(_run_jobs(orchestrator, first)) == 6

    def test_jobs_of_cancelled_run_are_reconnected(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        first = orchestrator.create_run(document_run_config())
        run = orchestrator.run_repository.find(first)
        run.cancel()
        orchestrator.run_repository.save(run)

        second = orchestrator.create_run(document_run_config())
        assert len(_run_jobs(orchestrator, second)) == 6
        assert _run_jobs(orchestrator, first) == []

    def test_run_without_work_completes_immediately(self, orchestrator, document_run_config):
        run_id = orchestrator.create_run(document_run_config())
        run = orchestrator.run_repository.find(run_id)
        assert run.status == RunStatus.COMPLETED
        assert orchestrator.get_run_progress(run_id)['total'] == 0

    def test_forced_run_takes_completed_jobs(self, orchestrator, provider, document_run_config):
        provider.add_document(1, links={'es': 50, 'fr': 51})
        orchestrator.run_discovery_cycle()

        normal = orchestrator.create_run(document_run_config())
        assert _run_jobs(orchestrator, normal) == []

        forced = orchestrator.create_run(document_run_config(forced=True))
        jobs = _run_jobs(orchestrator, forced)
        assert len(jobs) == 2
        assert all(job.status == JobStatus.COMPLETED for job in jobs)

    def test_invalid_config_is_rejected(self, orchestrator, document_run_config):
        with pytest.raises(InvalidRunConfigError) as excinfo:
            orchestrator.create_run(document_run_config(langs_to=['en']))
        assert excinfo.value.errors
        assert orchestrator.run_repository.find_all() == []

    def test_enqueues_connected_jobs(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config())
        assert orchestrator.dispatcher.pending_count(run_id) == 6


class TestBatching:
    """Test paging and memory pressure handling."""

    def test_small_batches_cover_every_job(self, orchestrator, three_documents, document_run_config, config):
        orchestrator.run_discovery_cycle()
        config.run_connector.batch_size = 2
        config.run_connector.batch_size_minimum = 1

        run_id = orchestrator.create_run(document_run_config())
        assert len(_run_jobs(orchestrator, run_id)) == 6

    def test_memory_pressure_halves_batch(self, orchestrator, three_documents, document_run_config,
                                          memory_manager, config):
        orchestrator.run_discovery_cycle()
        config.run_connector.batch_size = 300
        config.run_connector.batch_size_minimum = 100
        memory_manager.approaching = True
        warnings = []
        orchestrator.events.subscribe(
            LifecycleEvent.MEMORY_WARNING,
            lambda run_id, usage, batch_size: warnings.append(batch_size)
        )

        run_id = orchestrator.create_run(document_run_config())

        assert len(_run_jobs(orchestrator, run_id)) == 6
        assert warnings[0] == 150
        assert all(size >= 100 for size in warnings)

    def test_batch_never_below_minimum(self, orchestrator, three_documents, document_run_config,
                                       memory_manager, config):
        orchestrator.run_discovery_cycle()
        config.run_connector.batch_size = 3
        config.run_connector.batch_size_minimum = 2
        memory_manager.approaching = True
        warnings = []
        orchestrator.events.subscribe(
            LifecycleEvent.MEMORY_WARNING,
            lambda run_id, usage, batch_size: warnings.append(batch_size)
        )

        run_id = orchestrator.create_run(document_run_config())

        assert len(_run_jobs(orchestrator, run_id)) == 6
        assert warnings[0] == 2
        assert set(warnings) == {2}

    def test_garbage_collected_after_connecting(self, orchestrator, three_documents, document_run_config,
                                                memory_manager):
        orchestrator.run_discovery_cycle()
        orchestrator.create_run(document_run_config())
        assert memory_manager.gc_calls >= 1


class TestRunStats:
    """Test per language and content type statistics."""

    def test_stats_structure(self, orchestrator, provider, document_run_config):
        provider.add_document(1)
        provider.add_document(2, content_type='page')
        provider.add_term(7)
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config(
            langs_to=['es'], document_types=['post', 'page'], term_groups=['category']
        ))
        orchestrator.claim_next_job(run_id)

        stats = orchestrator.runs.get_stats(run_id)

        assert stats['documents']['es']['post']['in_progress'] == 1
        assert stats['documents']['es']['page']['pending'] == 1
        assert stats['terms']['es']['category']['total'] == 1
        assert 'fr' not in stats['documents']


class TestRunDeletion:
    """Test deleting a run."""

    def test_jobs_are_orphaned(self, orchestrator, three_documents, document_run_config):
        orchestrator.run_discovery_cycle()
        run_id = orchestrator.create_run(document_run_config())
        deleted = []
        orchestrator.events.subscribe(LifecycleEvent.RUN_DELETED, deleted.append)

        assert orchestrator.runs.delete_run(run_id)

        assert [run.id for run in deleted] == [run_id]
        assert orchestrator.run_repository.get(run_id) is None
        assert orchestrator.dispatcher.pending_count(run_id) == 0
        jobs = orchestrator.job_repository.find_all_by_content(ContentKind.DOCUMENT, 1)
        assert all(job.run_id is None and job.status == JobStatus.PENDING for job in jobs)

        # Orphaned jobs are picked up by the next run
        assert len(_run_jobs(orchestrator, orchestrator.create_run(document_run_config()))) == 6
