"""
Tests for the SQLite stores
"""
import threading

import pytest

from translation_orchestrator.config import ContentKind, JobStatus, RunStatus, TaskStatus
from translation_orchestrator.database import (
    JobRepository,
    TaskRepository,
    RunRepository,
    JobStatsRepository,
    JobQuery
)
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.exceptions import JobNotFoundError, RunNotFoundError
from translation_orchestrator.models import RunConfig, now_ts


@pytest.fixture
def events():
    return EventRegistry()


@pytest.fixture
def jobs(database, events):
    return JobRepository(database, events)


@pytest.fixture
def tasks(database, events, config):
    return TaskRepository(database, events, config)


@pytest.fixture
def runs(database):
    return RunRepository(database)


def _run_config():
    return RunConfig(lang_from='en', langs_to=['es'], document_types=['post'])


def _run_threads(count, target):
    """Start count threads on target at the same moment and collect results."""
    barrier = threading.Barrier(count)
    results = []
    errors = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            value = target()
        except Exception as e:
            with lock:
                errors.append(e)
            return
        with lock:
            results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


class TestJobCreation:
    """Test duplicate-safe job creation."""

    def test_get_or_create_returns_active_job(self, jobs):
        job, created = jobs.get_or_create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        again, created_again = jobs.get_or_create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        assert created is True
        assert created_again is False
        assert again.id == job.id
        assert again.status == JobStatus.PENDING

    def test_terminal_job_allows_new_job(self, jobs):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        job.fail()
        jobs.save(job)
        newer = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        assert newer.id != job.id
        assert jobs.find_latest_by_content_and_language(ContentKind.DOCUMENT, 1, 'en', 'es').id == newer.id

    def test_concurrent_creation_yields_one_job(self, jobs):
        results, errors = _run_threads(
            6, lambda: jobs.get_or_create(ContentKind.TERM, 9, 'en', 'fr', 'category')
        )
        assert errors == []
        assert sum(1 for _, created in results if created) == 1
        assert len({job.id for job, _ in results}) == 1

    def test_create_completed_records_target(self, jobs):
        job = jobs.create_completed(ContentKind.DOCUMENT, 1, 'en', 'es', 'post', id_to=55)
        stored = jobs.find(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.id_to == 55
        assert jobs.has_coverage_job(ContentKind.DOCUMENT, 1, 'en', 'es')

    def test_find_missing_job(self, jobs):
        with pytest.raises(JobNotFoundError):
            jobs.find(12345)


class TestCoverageQueries:
    """Test coverage counting used by discovery."""

    def test_count_coverage_by_source(self, jobs):
        jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.create_completed(ContentKind.DOCUMENT, 1, 'en', 'fr', 'post', id_to=7)
        failed = jobs.create(ContentKind.DOCUMENT, 2, 'en', 'es', 'post')
        failed.fail()
        jobs.save(failed)

        counts = jobs.count_coverage_by_source(ContentKind.DOCUMENT, [1, 2, 3], 'en', ['es', 'fr'])
        assert counts == {1: 2}


class TestClaiming:
    """Test atomic claiming of pending jobs."""

    def test_claims_oldest_pending_first(self, jobs, runs):
        run = runs.create(_run_config())
        created = [jobs.create(ContentKind.DOCUMENT, item_id, 'en', 'es', 'post') for item_id in (1, 2, 3)]
        jobs.bulk_assign_to_run([job.id for job in created], run.id)

        claimed = [jobs.claim_next_job_for_run(run.id) for _ in range(3)]
        assert [job.id for job in claimed] == [job.id for job in created]
        assert all(job.status == JobStatus.IN_PROGRESS and job.started_at for job in claimed)
        assert jobs.claim_next_job_for_run(run.id) is None

    def test_claim_ignores_other_runs(self, jobs, runs):
        run = runs.create(_run_config())
        other = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], other.id)
        assert jobs.claim_next_job_for_run(run.id) is None

    def test_concurrent_claims_are_exclusive(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)

        results, errors = _run_threads(8, lambda: jobs.claim_next_job_for_run(run.id))

        assert errors == []
        assert len(results) == 8
        winners = [result for result in results if result is not None]
        assert len(winners) == 1
        assert winners[0].id == job.id
        assert jobs.find(job.id).status == JobStatus.IN_PROGRESS

    def test_claim_job_by_id(self, jobs):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')

        claimed = jobs.claim_job(job.id)

        assert claimed.id == job.id
        assert claimed.status == JobStatus.IN_PROGRESS
        assert claimed.started_at is not None
        assert jobs.claim_job(job.id) is None
        assert jobs.claim_job(12345) is None

    def test_claim_job_skips_job_claimed_for_run(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)
        jobs.claim_next_job_for_run(run.id)

        assert jobs.claim_job(job.id) is None

    def test_concurrent_claims_by_id_are_exclusive(self, jobs):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')

        results, errors = _run_threads(8, lambda: jobs.claim_job(job.id))

        assert errors == []
        assert len([result for result in results if result is not None]) == 1


class TestConditionalWrites:
    """Test that writes guarded by status never overwrite a finished job."""

    def test_reset_and_fail_leave_completed_job(self, jobs):
        done = jobs.create_completed(ContentKind.DOCUMENT, 1, 'en', 'es', 'post', id_to=9)

        assert jobs.reset_to_pending(done.id) is False
        assert jobs.mark_failed(done.id) is False

        stored = jobs.find(done.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.id_to == 9

    def test_reset_requires_expected_status(self, jobs):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')

        assert jobs.reset_to_pending(job.id) is False
        assert jobs.reset_to_pending(job.id, from_status=JobStatus.PENDING) is True

    def test_save_if_active_keeps_first_outcome(self, jobs, events):
        saved = []
        events.subscribe(LifecycleEvent.JOB_SAVED, saved.append)
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        completed = jobs.find(job.id)
        failed = jobs.find(job.id)

        completed.id_to = 77
        completed.complete()
        assert jobs.save_if_active(completed) is True
        failed.fail()
        assert jobs.save_if_active(failed) is False

        stored = jobs.find(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.id_to == 77
        assert saved == [completed]

    def test_save_if_active_missing_job(self, jobs):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.delete(job)
        job.complete()

        with pytest.raises(JobNotFoundError):
            jobs.save_if_active(job)


class TestRunCompletion:
    """Test atomic run finalization."""

    def test_run_with_active_job_stays_open(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)
        assert runs.attempt_atomic_completion(run.id) is False
        assert runs.find(run.id).status == RunStatus.PENDING

    def test_failed_job_fails_run(self, jobs, runs):
        run = runs.create(_run_config())
        done = jobs.create_completed(ContentKind.DOCUMENT, 1, 'en', 'es', 'post', id_to=10)
        failed = jobs.create(ContentKind.DOCUMENT, 2, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([done.id, failed.id], run.id)
        jobs.mark_failed(failed.id)

        assert runs.attempt_atomic_completion(run.id) is True
        assert runs.find(run.id).status == RunStatus.FAILED
        assert runs.attempt_atomic_completion(run.id) is False

    def test_concurrent_completion_transitions_once(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create_completed(ContentKind.DOCUMENT, 1, 'en', 'es', 'post', id_to=10)
        jobs.bulk_assign_to_run([job.id], run.id)

        results, errors = _run_threads(5, lambda: runs.attempt_atomic_completion(run.id))

        assert errors == []
        assert sorted(results) == [False, False, False, False, True]
        assert runs.find(run.id).status == RunStatus.COMPLETED

    def test_missing_run(self, runs):
        with pytest.raises(RunNotFoundError):
            runs.attempt_atomic_completion(999)


class TestBulkOperations:
    """Test bulk writes used by runs and recovery."""

    def test_cancel_non_terminal_for_run(self, jobs, runs):
        run = runs.create(_run_config())
        pending = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        done = jobs.create_completed(ContentKind.DOCUMENT, 2, 'en', 'es', 'post', id_to=3)
        jobs.bulk_assign_to_run([pending.id, done.id], run.id)

        assert jobs.cancel_non_terminal_for_run(run.id) == 1
        cancelled = jobs.find(pending.id)
        assert cancelled.status == JobStatus.CANCELLED
        assert cancelled.completed_at is not None
        assert jobs.find(done.id).status == JobStatus.COMPLETED

    def test_find_stale_job_ids(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)
        jobs.claim_next_job_for_run(run.id)

        assert jobs.find_stale_job_ids_for_run(run.id, 600) == []
        assert jobs.find_stale_job_ids_for_run(run.id, 600, now=now_ts() + 601) == [job.id]

    def test_reset_to_pending_clears_start(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)
        jobs.claim_next_job_for_run(run.id)

        assert jobs.reset_to_pending(job.id)
        stored = jobs.find(job.id)
        assert stored.status == JobStatus.PENDING
        assert stored.started_at is None

    def test_deleting_job_deletes_tasks(self, jobs, tasks):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        task = tasks.create('title', 'Hello', job.id)
        assert jobs.delete(job)
        assert tasks.get(task.id) is None

    def test_deleting_run_orphans_jobs(self, jobs, runs):
        run = runs.create(_run_config())
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([job.id], run.id)
        assert runs.delete(run)
        assert jobs.find(job.id).run_id is None


class TestTaskRepository:
    """Test task persistence and stats."""

    def test_save_emits_task_saved(self, jobs, tasks, events):
        received = []
        events.subscribe(LifecycleEvent.TASK_SAVED, received.append)
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        task = tasks.create('title', 'Hello', job.id)
        task.complete('Hola')
        tasks.save(task)

        assert [saved.id for saved in received] == [task.id]
        assert tasks.find(task.id).translation == 'Hola'

    def test_stats_for_job(self, jobs, tasks):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        done = tasks.create('title', 'Hello', job.id)
        done.complete('Hola')
        tasks.save(done)
        exhausted = tasks.create('content', 'Body', job.id)
        for _ in range(3):
            exhausted.fail('timeout')
        tasks.save(exhausted)
        tasks.create('excerpt', 'Short', job.id)

        stats = tasks.get_stats_for_job(job.id)
        assert (stats.total, stats.completed, stats.exhausted) == (3, 1, 1)

    def test_find_pending_by_reference(self, jobs, tasks):
        job = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        task = tasks.create('title', 'Hello', job.id)
        assert tasks.find_pending_by_reference(job.id, 'title').id == task.id
        task.complete('Hola')
        tasks.save(task)
        assert tasks.find_pending_by_reference(job.id, 'title') is None
        assert tasks.find(task.id).status == TaskStatus.COMPLETED


class TestQueriesAndStats:
    """Test the job query builder and progress counts."""

    def test_query_orphaned_or_inactive(self, jobs, runs):
        pending_run = runs.create(_run_config())
        running_run = runs.create(_run_config())
        orphan = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        in_pending = jobs.create(ContentKind.DOCUMENT, 2, 'en', 'es', 'post')
        in_running = jobs.create(ContentKind.DOCUMENT, 3, 'en', 'es', 'post')
        jobs.bulk_assign_to_run([in_pending.id], pending_run.id)
        jobs.bulk_assign_to_run([in_running.id], running_run.id)
        runs.mark_running(running_run.id)

        query = JobQuery(ContentKind.DOCUMENT).lang_from('en').include_orphaned().include_from_inactive_runs()
        assert [job.id for job in jobs.find_by(query)] == [orphan.id, in_pending.id]

    def test_run_progress(self, database, jobs, runs):
        run = runs.create(_run_config())
        first = jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        second = jobs.create_completed(ContentKind.DOCUMENT, 2, 'en', 'es', 'post', id_to=8)
        jobs.bulk_assign_to_run([first.id, second.id], run.id)

        progress = JobStatsRepository(database).get_run_progress(run.id)
        assert progress['pending'] == 1
        assert progress['completed'] == 1
        assert progress['total'] == 2

    def test_waiting_stats(self, database, jobs):
        jobs.create(ContentKind.DOCUMENT, 1, 'en', 'es', 'post')
        failed = jobs.create(ContentKind.DOCUMENT, 2, 'en', 'es', 'post')
        jobs.mark_failed(failed.id)

        stats = JobStatsRepository(database).get_waiting_stats('en')
        assert stats == {'post': {'es': {'pending': 1, 'failed': 1}}}
