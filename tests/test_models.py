"""
Unit Tests for Status Model and Entities
"""
import pytest

from translation_orchestrator.config.constants import (
    JobStatus,
    RunStatus,
    TaskStatus,
    is_processable,
    is_coverage_status,
    is_job_terminal,
    is_run_inactive,
    final_run_status,
    ISSUE_TRUNCATION_SUFFIX
)
from translation_orchestrator.models import (
    Task,
    Job,
    Run,
    RunConfig,
    TaskOutcome,
    RecoveryResult
)
from translation_orchestrator.config import ContentKind, RecoveryStrategy


class TestStatusGroups:
    """Test the pure functions over statuses."""

    def test_only_pending_is_processable(self):
        assert is_processable(JobStatus.PENDING)
        for status in (JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED):
            assert not is_processable(status)

    def test_failed_and_cancelled_do_not_cover(self):
        assert is_coverage_status(JobStatus.COMPLETED)
        assert is_coverage_status(JobStatus.IN_PROGRESS)
        assert not is_coverage_status(JobStatus.FAILED)
        assert not is_coverage_status(JobStatus.CANCELLED)

    def test_terminal_job_statuses(self):
        assert is_job_terminal(JobStatus.CANCELLED)
        assert not is_job_terminal(JobStatus.PENDING)

    def test_pending_run_is_inactive(self):
        assert is_run_inactive(RunStatus.PENDING)
        assert not is_run_inactive(RunStatus.RUNNING)
        assert not is_run_inactive(RunStatus.COMPLETED)

    def test_final_run_status(self):
        assert final_run_status([JobStatus.COMPLETED, JobStatus.IN_PROGRESS]) is None
        assert final_run_status([JobStatus.COMPLETED, JobStatus.FAILED]) == RunStatus.FAILED
        assert final_run_status([JobStatus.COMPLETED, JobStatus.CANCELLED]) == RunStatus.COMPLETED
        assert final_run_status([]) == RunStatus.COMPLETED


class TestTask:
    """Test task state and retry bookkeeping."""

    def test_exhausted_after_max_attempts(self):
        task = Task(job_id=1, reference='title', value='Hello', max_attempts=3)
        for _ in range(2):
            task.fail("timeout")
            assert not task.is_exhausted()
            assert task.is_pending_process()
        task.fail("timeout")
        assert task.attempts == 3
        assert task.is_exhausted()
        assert not task.is_pending_process()

    def test_failed_task_with_translation_is_not_exhausted(self):
        task = Task(job_id=1, reference='title', value='Hello', translation='Hola',
                    status=TaskStatus.FAILED, attempts=5)
        assert not task.is_exhausted()

    def test_complete_clears_issue(self):
        task = Task(job_id=1, reference='title', value='Hello')
        task.fail("boom")
        task.complete("Hola")
        assert task.status == TaskStatus.COMPLETED
        assert task.issue is None
        assert task.translation == "Hola"

    def test_issue_is_truncated(self):
        task = Task(job_id=1, reference='title', value='Hello')
        task.set_issue("x" * 50, max_length=10)
        assert task.issue == "x" * 10 + ISSUE_TRUNCATION_SUFFIX


class TestJobAndRun:
    """Test job and run transitions."""

    def test_job_reset_clears_timestamps(self):
        job = Job(type=ContentKind.DOCUMENT, content_type='post', id_from=1, lang_from='en', lang_to='es')
        job.start()
        job.complete()
        job.reset()
        assert job.status == JobStatus.PENDING
        assert job.started_at is None
        assert job.completed_at is None

    def test_job_cancel_records_end_time(self):
        job = Job(type=ContentKind.DOCUMENT, content_type='post', id_from=1, lang_from='en', lang_to='es')
        job.cancel()
        assert job.status == JobStatus.CANCELLED
        assert job.completed_at is not None

    def test_job_start_keeps_first_start_time(self):
        job = Job(type=ContentKind.DOCUMENT, content_type='post', id_from=1, lang_from='en', lang_to='es')
        job.started_at = 100
        job.start()
        assert job.started_at == 100
        assert job.status == JobStatus.IN_PROGRESS

    def test_run_is_stale_only_while_running(self):
        run = Run(config=RunConfig(lang_from='en', langs_to=['es'], document_types=['post']), created_at=0)
        assert not run.is_stale(60, now=10_000)
        run.start()
        run.last_heartbeat = 100
        assert run.is_stale(60, now=200)
        assert not run.is_stale(60, now=150)


class TestRunConfig:
    """Test run configuration validation and serialization."""

    def test_valid_config(self):
        config = RunConfig(lang_from='en', langs_to=['es', 'fr'], document_types=['post'])
        assert config.validate() == []

    def test_requires_targets_and_content(self):
        errors = RunConfig(lang_from='en', langs_to=[]).validate()
        assert any('target language' in error for error in errors)
        assert any('selects no content' in error for error in errors)

    def test_rejects_source_as_target(self):
        errors = RunConfig(lang_from='en', langs_to=['en'], document_types=['post']).validate()
        assert errors

    def test_rejects_non_positive_limit(self):
        errors = RunConfig(lang_from='en', langs_to=['es'], document_types=['post'], limit=0).validate()
        assert errors

    def test_json_snapshot(self):
        config = RunConfig(
            lang_from='en', langs_to=['es'], specific_terms=[4, 5],
            instructions='Formal tone', forced=True, limit=10
        )
        restored = RunConfig.from_json(config.to_json())
        assert restored == config
        assert restored.specific_ids_for(ContentKind.TERM) == [4, 5]
        assert restored.has_work_for(ContentKind.TERM)
        assert not restored.has_work_for(ContentKind.DOCUMENT)


class TestResults:
    """Test outcome and recovery result values."""

    def test_outcome_needs_exactly_one_value(self):
        with pytest.raises(ValueError):
            TaskOutcome()
        with pytest.raises(ValueError):
            TaskOutcome(translation='Hola', error='boom')
        assert TaskOutcome(translation='Hola').succeeded
        assert not TaskOutcome(error='boom').succeeded

    def test_recovery_result_counts(self):
        result = RecoveryResult()
        result.record(RecoveryStrategy.FINISH)
        result.record(RecoveryStrategy.RESET)
        result.record(RecoveryStrategy.RESET)
        assert result.to_dict() == {'failed': 0, 'finished': 1, 'reset': 2, 'total': 3}
        assert result.has_changes
