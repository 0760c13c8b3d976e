"""
Database Repositories
=====================
Data access for runs, jobs and tasks.

Writes that must read before they write (duplicate-safe creation, claiming,
run completion) run inside ``Database.immediate_transaction`` so concurrent
workers cannot interleave between the read and the write.
"""
from typing import Optional, List, Dict, Iterable, Tuple

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.config.constants import (
    ContentKind,
    JobStatus,
    RunStatus,
    TaskStatus,
    COVERAGE_JOB_STATUSES,
    NON_TERMINAL_JOB_STATUSES,
    ACTIVE_RUN_STATUSES,
    is_run_terminal,
    final_run_status,
    status_values
)
from translation_orchestrator.database.connection import Database, get_database, placeholders
from translation_orchestrator.database.queries import JobQuery
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.exceptions import (
    JobNotFoundError,
    TaskNotFoundError,
    RunNotFoundError
)
from translation_orchestrator.models import Task, Job, Run, RunConfig, TaskStats, now_ts
from translation_orchestrator.utils.logging import get_logger

# SQLite caps bound parameters per statement; IN lists are chunked below it
_IN_CHUNK = 500


def _chunks(values: List, size: int = _IN_CHUNK) -> Iterable[List]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class TaskRepository:
    """Repository for field translation tasks."""

    def __init__(
        self,
        database: Database = None,
        events: EventRegistry = None,
        config: Config = None
    ):
        self.db = database or get_database()
        self.events = events
        self.config = config or default_config
        self.logger = get_logger().db_logger

    @property
    def max_attempts(self) -> int:
        return self.config.translation.max_task_attempts

    def _to_task(self, row) -> Task:
        return Task.from_row(row, max_attempts=self.max_attempts)

    def create(self, reference: str, value: str, job_id: int) -> Task:
        """Create a pending task for a job."""
        now = now_ts()
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO tasks (
                    job_id, reference, value, status, attempts, created_at, updated_at
                ) VALUES (?, ?, ?, ?, 0, ?, ?)
            """, (job_id, reference, value, TaskStatus.PENDING.value, now, now))
            task_id = cursor.lastrowid

        return Task(
            id=task_id,
            job_id=job_id,
            reference=reference,
            value=value,
            max_attempts=self.max_attempts,
            created_at=now,
            updated_at=now
        )

    def get(self, task_id: int) -> Optional[Task]:
        row = self.db.fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return self._to_task(row) if row else None

    def find(self, task_id: int) -> Task:
        """Get task by ID or raise TaskNotFoundError."""
        task = self.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def find_by_job_id(self, job_id: int) -> List[Task]:
        rows = self.db.fetchall(
            "SELECT * FROM tasks WHERE job_id = ? ORDER BY id ASC",
            (job_id,)
        )
        return [self._to_task(row) for row in rows]

    def find_pending_by_reference(self, job_id: int, reference: str) -> Optional[Task]:
        """Find the pending task for a field of a job, if any."""
        row = self.db.fetchone("""
            SELECT * FROM tasks
            WHERE job_id = ? AND reference = ? AND status = ?
            ORDER BY id DESC LIMIT 1
        """, (job_id, reference, TaskStatus.PENDING.value))
        return self._to_task(row) if row else None

    def save(self, task: Task) -> None:
        """Persist task state and notify task-saved subscribers."""
        task.updated_at = now_ts()
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                UPDATE tasks SET
                    translation = ?,
                    status = ?,
                    attempts = ?,
                    issue = ?,
                    updated_at = ?
                WHERE id = ?
            """, (
                task.translation, task.status.value, task.attempts,
                task.issue, task.updated_at, task.id
            ))
            if cursor.rowcount == 0:
                raise TaskNotFoundError(task.id)

        if self.events:
            self.events.emit(LifecycleEvent.TASK_SAVED, task)

    def update_value(self, task: Task, value: str) -> None:
        """Replace the source value of a task without triggering cascades."""
        task.value = value
        task.updated_at = now_ts()
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE tasks SET value = ?, updated_at = ? WHERE id = ?",
                (value, task.updated_at, task.id)
            )

    def delete(self, task: Task) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task.id,))
            return cursor.rowcount > 0

    def get_stats_for_job(self, job_id: int) -> TaskStats:
        """Count total, completed and exhausted tasks of a job."""
        row = self.db.fetchone("""
            SELECT
                COUNT(*) AS total,
                SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) AS completed,
                SUM(CASE WHEN status = ? AND attempts >= ?
                         AND (translation IS NULL OR translation = '')
                    THEN 1 ELSE 0 END) AS exhausted
            FROM tasks
            WHERE job_id = ?
        """, (
            TaskStatus.COMPLETED.value, TaskStatus.FAILED.value,
            self.max_attempts, job_id
        ))
        return TaskStats(
            total=row['total'] or 0,
            completed=row['completed'] or 0,
            exhausted=row['exhausted'] or 0
        )


class JobRepository:
    """
    Repository for translation jobs.

    Provides duplicate-safe creation, atomic claiming and the bulk
    operations used by run assignment and recovery.
    """

    def __init__(
        self,
        database: Database = None,
        events: EventRegistry = None
    ):
        self.db = database or get_database()
        self.events = events
        self.logger = get_logger().db_logger

    def query(self, job_type: ContentKind) -> JobQuery:
        return JobQuery(job_type)

    # ----- creation -------------------------------------------------------

    def get_or_create(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str,
        content_type: str
    ) -> Tuple[Job, bool]:
        """
        Return the active job for the content tuple, creating one if none exists.

        The lookup and the insert share one write-locked transaction, so two
        concurrent callers cannot both insert.

        Returns:
            Tuple of (job, created)
        """
        with self.db.immediate_transaction() as conn:
            row = conn.execute(f"""
                SELECT * FROM jobs
                WHERE type = ? AND id_from = ? AND lang_from = ? AND lang_to = ?
                  AND status IN ({placeholders(NON_TERMINAL_JOB_STATUSES)})
                ORDER BY id DESC LIMIT 1
            """, (
                job_type.value, id_from, lang_from, lang_to,
                *status_values(NON_TERMINAL_JOB_STATUSES)
            )).fetchone()
            if row is not None:
                return Job.from_row(row), False

            now = now_ts()
            cursor = conn.execute("""
                INSERT INTO jobs (
                    type, content_type, id_from, lang_from, lang_to, status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                job_type.value, content_type, id_from, lang_from, lang_to,
                JobStatus.PENDING.value, now
            ))
            job = Job(
                id=cursor.lastrowid,
                type=job_type,
                content_type=content_type,
                id_from=id_from,
                lang_from=lang_from,
                lang_to=lang_to,
                created_at=now
            )

        self.logger.debug(f"Created job {job.id} for {job_type.value}:{id_from} -> {lang_to}")
        return job, True

    def create(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str,
        content_type: str
    ) -> Job:
        """Create a pending job, or return the existing active one."""
        job, _ = self.get_or_create(job_type, id_from, lang_from, lang_to, content_type)
        return job

    def create_completed(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str,
        content_type: str,
        id_to: int = None
    ) -> Job:
        """Record coverage that already exists as a completed job."""
        now = now_ts()
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO jobs (
                    type, content_type, id_from, id_to, lang_from, lang_to,
                    status, created_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                job_type.value, content_type, id_from, id_to, lang_from, lang_to,
                JobStatus.COMPLETED.value, now, now
            ))
            job_id = cursor.lastrowid

        return Job(
            id=job_id,
            type=job_type,
            content_type=content_type,
            id_from=id_from,
            id_to=id_to,
            lang_from=lang_from,
            lang_to=lang_to,
            status=JobStatus.COMPLETED,
            created_at=now,
            completed_at=now
        )

    # ----- lookups --------------------------------------------------------

    def get(self, job_id: int) -> Optional[Job]:
        row = self.db.fetchone("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return Job.from_row(row) if row else None

    def find(self, job_id: int) -> Job:
        """Get job by ID or raise JobNotFoundError."""
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def find_by(self, query: JobQuery) -> List[Job]:
        sql, params = query.build()
        return [Job.from_row(row) for row in self.db.fetchall(sql, tuple(params))]

    def find_active_job_for_content(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str
    ) -> Optional[Job]:
        """Newest pending or in-progress job for the content tuple."""
        row = self.db.fetchone(f"""
            SELECT * FROM jobs
            WHERE type = ? AND id_from = ? AND lang_from = ? AND lang_to = ?
              AND status IN ({placeholders(NON_TERMINAL_JOB_STATUSES)})
            ORDER BY id DESC LIMIT 1
        """, (
            job_type.value, id_from, lang_from, lang_to,
            *status_values(NON_TERMINAL_JOB_STATUSES)
        ))
        return Job.from_row(row) if row else None

    def has_jobs_for_content_language(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str,
        statuses: Iterable[JobStatus] = COVERAGE_JOB_STATUSES
    ) -> bool:
        statuses = status_values(statuses)
        row = self.db.fetchone(f"""
            SELECT 1 FROM jobs
            WHERE type = ? AND id_from = ? AND lang_from = ? AND lang_to = ?
              AND status IN ({placeholders(statuses)})
            LIMIT 1
        """, (job_type.value, id_from, lang_from, lang_to, *statuses))
        return row is not None

    def has_coverage_job(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str
    ) -> bool:
        """Whether a completed, pending or in-progress job covers the language."""
        return self.has_jobs_for_content_language(job_type, id_from, lang_from, lang_to)

    def count_coverage_by_source(
        self,
        job_type: ContentKind,
        source_ids: List[int],
        lang_from: str,
        langs_to: List[str]
    ) -> Dict[int, int]:
        """Number of distinct covered target languages per source item."""
        counts: Dict[int, int] = {}
        if not source_ids or not langs_to:
            return counts

        statuses = status_values(COVERAGE_JOB_STATUSES)
        for chunk in _chunks(list(source_ids)):
            rows = self.db.fetchall(f"""
                SELECT id_from, COUNT(DISTINCT lang_to) AS covered
                FROM jobs
                WHERE type = ? AND lang_from = ?
                  AND id_from IN ({placeholders(chunk)})
                  AND lang_to IN ({placeholders(langs_to)})
                  AND status IN ({placeholders(statuses)})
                GROUP BY id_from
            """, (job_type.value, lang_from, *chunk, *langs_to, *statuses))
            for row in rows:
                counts[row['id_from']] = row['covered']
        return counts

    def find_latest_by_content_and_language(
        self,
        job_type: ContentKind,
        id_from: int,
        lang_from: str,
        lang_to: str
    ) -> Optional[Job]:
        row = self.db.fetchone("""
            SELECT * FROM jobs
            WHERE type = ? AND id_from = ? AND lang_from = ? AND lang_to = ?
            ORDER BY id DESC LIMIT 1
        """, (job_type.value, id_from, lang_from, lang_to))
        return Job.from_row(row) if row else None

    def find_all_by_content(self, job_type: ContentKind, id_from: int) -> List[Job]:
        rows = self.db.fetchall(
            "SELECT * FROM jobs WHERE type = ? AND id_from = ? ORDER BY id ASC",
            (job_type.value, id_from)
        )
        return [Job.from_row(row) for row in rows]

    def find_all_by_run_id(self, run_id: int) -> List[Job]:
        rows = self.db.fetchall(
            "SELECT * FROM jobs WHERE run_id = ? ORDER BY id ASC",
            (run_id,)
        )
        return [Job.from_row(row) for row in rows]

    def find_all_by_target_id(self, job_type: ContentKind, id_to: int) -> List[Job]:
        rows = self.db.fetchall(
            "SELECT * FROM jobs WHERE type = ? AND id_to = ? ORDER BY id ASC",
            (job_type.value, id_to)
        )
        return [Job.from_row(row) for row in rows]

    def find_by_run_and_statuses(
        self,
        run_id: int,
        statuses: Iterable[JobStatus],
        limit: int = None
    ) -> List[Job]:
        statuses = status_values(statuses)
        sql = f"""
            SELECT * FROM jobs
            WHERE run_id = ? AND status IN ({placeholders(statuses)})
            ORDER BY id ASC
        """
        params = [run_id, *statuses]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [Job.from_row(row) for row in self.db.fetchall(sql, tuple(params))]

    def count_by_run_and_statuses(self, run_id: int, statuses: Iterable[JobStatus]) -> int:
        statuses = status_values(statuses)
        row = self.db.fetchone(f"""
            SELECT COUNT(*) AS total FROM jobs
            WHERE run_id = ? AND status IN ({placeholders(statuses)})
        """, (run_id, *statuses))
        return row['total'] if row else 0

    def find_inconsistent_completed_jobs(self, run_id: int) -> List[int]:
        """Completed jobs of a run that still own unfinished tasks."""
        rows = self.db.fetchall("""
            SELECT DISTINCT j.id FROM jobs j
            INNER JOIN tasks t ON t.job_id = j.id
            WHERE j.run_id = ? AND j.status = ? AND t.status != ?
            ORDER BY j.id ASC
        """, (run_id, JobStatus.COMPLETED.value, TaskStatus.COMPLETED.value))
        return [row['id'] for row in rows]

    # ----- writes ---------------------------------------------------------

    def save(self, job: Job) -> None:
        """Persist job state and notify job-saved subscribers."""
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                UPDATE jobs SET
                    content_type = ?,
                    id_to = ?,
                    status = ?,
                    run_id = ?,
                    started_at = ?,
                    completed_at = ?
                WHERE id = ?
            """, (
                job.content_type, job.id_to, job.status.value, job.run_id,
                job.started_at, job.completed_at, job.id
            ))
            if cursor.rowcount == 0:
                raise JobNotFoundError(job.id)

        if self.events:
            self.events.emit(LifecycleEvent.JOB_SAVED, job)

    def save_if_active(self, job: Job) -> bool:
        """
        Persist job state only while the stored job is pending or in progress.

        Used for terminal transitions, so two writers finishing the same job
        cannot overwrite each other's outcome.

        Returns:
            True if the job was saved, False if it was already terminal

        Raises:
            JobNotFoundError: If the job does not exist
        """
        statuses = status_values(NON_TERMINAL_JOB_STATUSES)
        with self.db.immediate_transaction() as conn:
            cursor = conn.execute(f"""
                UPDATE jobs SET
                    content_type = ?,
                    id_to = ?,
                    status = ?,
                    run_id = ?,
                    started_at = ?,
                    completed_at = ?
                WHERE id = ? AND status IN ({placeholders(statuses)})
            """, (
                job.content_type, job.id_to, job.status.value, job.run_id,
                job.started_at, job.completed_at, job.id, *statuses
            ))
            saved = cursor.rowcount == 1
            if not saved and conn.execute("SELECT 1 FROM jobs WHERE id = ?", (job.id,)).fetchone() is None:
                raise JobNotFoundError(job.id)

        if saved and self.events:
            self.events.emit(LifecycleEvent.JOB_SAVED, job)
        return saved

    def delete(self, job: Job) -> bool:
        """Delete a job; its tasks go with it."""
        return self.delete_by_ids([job.id]) > 0

    def delete_by_ids(self, job_ids: List[int]) -> int:
        deleted = 0
        with self.db.transaction() as conn:
            for chunk in _chunks(list(job_ids)):
                cursor = conn.execute(
                    f"DELETE FROM jobs WHERE id IN ({placeholders(chunk)})",
                    tuple(chunk)
                )
                deleted += cursor.rowcount
        if deleted:
            self.logger.info(f"Deleted {deleted} jobs")
        return deleted

    def claim_next_job_for_run(self, run_id: int) -> Optional[Job]:
        """
        Atomically move the oldest pending job of a run to in_progress.

        The select and the status-guarded update happen under the database
        write lock, so each pending job is handed to at most one caller.
        Any error rolls the transaction back and propagates.

        Returns:
            The claimed job, or None when the run has no pending job
        """
        with self.db.immediate_transaction() as conn:
            row = conn.execute("""
                SELECT * FROM jobs
                WHERE run_id = ? AND status = ?
                ORDER BY id ASC LIMIT 1
            """, (run_id, JobStatus.PENDING.value)).fetchone()
            if row is None:
                return None

            started_at = now_ts()
            cursor = conn.execute("""
                UPDATE jobs SET status = ?, started_at = ?, completed_at = NULL
                WHERE id = ? AND status = ?
            """, (JobStatus.IN_PROGRESS.value, started_at, row['id'], JobStatus.PENDING.value))
            if cursor.rowcount != 1:
                return None

        job = Job.from_row(row)
        job.status = JobStatus.IN_PROGRESS
        job.started_at = started_at
        job.completed_at = None
        self.logger.debug(f"Claimed job {job.id} for run {run_id}")
        return job

    def claim_job(self, job_id: int) -> Optional[Job]:
        """
        Atomically move one pending job to in_progress.

        Returns:
            The claimed job, or None if it does not exist or is not pending
        """
        started_at = now_ts()
        with self.db.immediate_transaction() as conn:
            cursor = conn.execute("""
                UPDATE jobs SET status = ?, started_at = ?, completed_at = NULL
                WHERE id = ? AND status = ?
            """, (JobStatus.IN_PROGRESS.value, started_at, job_id, JobStatus.PENDING.value))
            if cursor.rowcount != 1:
                return None
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()

        self.logger.debug(f"Claimed job {job_id}")
        return Job.from_row(row)

    def find_stale_job_ids_for_run(
        self,
        run_id: int,
        timeout: int,
        now: int = None
    ) -> List[int]:
        """In-progress jobs of a run started more than timeout seconds ago."""
        cutoff = (now if now is not None else now_ts()) - timeout
        rows = self.db.fetchall("""
            SELECT id FROM jobs
            WHERE run_id = ? AND status = ?
              AND started_at IS NOT NULL AND started_at < ?
            ORDER BY id ASC
        """, (run_id, JobStatus.IN_PROGRESS.value, cutoff))
        return [row['id'] for row in rows]

    def reset_to_pending(self, job_id: int, from_status: JobStatus = JobStatus.IN_PROGRESS) -> bool:
        """
        Put a job back in the queue with its start time cleared.

        Only a job still in from_status is reset, so a job another worker
        finished in the meantime keeps its outcome.

        Returns:
            True if the job was reset
        """
        with self.db.immediate_transaction() as conn:
            cursor = conn.execute("""
                UPDATE jobs SET status = ?, started_at = NULL, completed_at = NULL
                WHERE id = ? AND status = ?
            """, (JobStatus.PENDING.value, job_id, from_status.value))
            return cursor.rowcount == 1

    def mark_failed(self, job_id: int) -> bool:
        """
        Direct terminal write for a pending or in-progress job; no job-saved
        notification. Returns False when the job was already terminal.
        """
        statuses = status_values(NON_TERMINAL_JOB_STATUSES)
        with self.db.immediate_transaction() as conn:
            cursor = conn.execute(f"""
                UPDATE jobs SET status = ?, completed_at = ?
                WHERE id = ? AND status IN ({placeholders(statuses)})
            """, (JobStatus.FAILED.value, now_ts(), job_id, *statuses))
            return cursor.rowcount == 1

    def bulk_assign_to_run(self, job_ids: List[int], run_id: int) -> int:
        if not job_ids:
            return 0
        assigned = 0
        with self.db.transaction() as conn:
            for chunk in _chunks(list(job_ids)):
                cursor = conn.execute(
                    f"UPDATE jobs SET run_id = ? WHERE id IN ({placeholders(chunk)})",
                    (run_id, *chunk)
                )
                assigned += cursor.rowcount
        return assigned

    def cancel_non_terminal_for_run(self, run_id: int) -> int:
        """Cancel every pending or in-progress job of a run."""
        with self.db.transaction() as conn:
            cursor = conn.execute(f"""
                UPDATE jobs SET status = ?, completed_at = ?
                WHERE run_id = ? AND status IN ({placeholders(NON_TERMINAL_JOB_STATUSES)})
            """, (
                JobStatus.CANCELLED.value, now_ts(), run_id,
                *status_values(NON_TERMINAL_JOB_STATUSES)
            ))
            return cursor.rowcount


class RunRepository:
    """Repository for translation runs."""

    def __init__(self, database: Database = None):
        self.db = database or get_database()
        self.logger = get_logger().db_logger

    def create(self, run_config: RunConfig) -> Run:
        """Create a pending run with a snapshot of its configuration."""
        now = now_ts()
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO runs (status, config, created_at)
                VALUES (?, ?, ?)
            """, (RunStatus.PENDING.value, run_config.to_json(), now))
            run_id = cursor.lastrowid

        self.logger.info(f"Created run {run_id}")
        return Run(id=run_id, config=run_config, created_at=now)

    def get(self, run_id: int) -> Optional[Run]:
        row = self.db.fetchone("SELECT * FROM runs WHERE id = ?", (run_id,))
        return Run.from_row(row) if row else None

    def find(self, run_id: int) -> Run:
        """Get run by ID or raise RunNotFoundError."""
        run = self.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def find_all(self, limit: int = 100, offset: int = 0) -> List[Run]:
        rows = self.db.fetchall(
            "SELECT * FROM runs ORDER BY id DESC LIMIT ? OFFSET ?",
            (limit, offset)
        )
        return [Run.from_row(row) for row in rows]

    def find_by_status(self, statuses: Iterable[RunStatus]) -> List[Run]:
        statuses = status_values(statuses)
        rows = self.db.fetchall(
            f"SELECT * FROM runs WHERE status IN ({placeholders(statuses)}) ORDER BY id ASC",
            tuple(statuses)
        )
        return [Run.from_row(row) for row in rows]

    def find_active_runs(self) -> List[Run]:
        """Pending and running runs."""
        return self.find_by_status(ACTIVE_RUN_STATUSES)

    def save(self, run: Run) -> None:
        with self.db.transaction() as conn:
            cursor = conn.execute("""
                UPDATE runs SET
                    status = ?,
                    config = ?,
                    started_at = ?,
                    last_heartbeat = ?,
                    completed_at = ?
                WHERE id = ?
            """, (
                run.status.value, run.config.to_json(), run.started_at,
                run.last_heartbeat, run.completed_at, run.id
            ))
            if cursor.rowcount == 0:
                raise RunNotFoundError(run.id)

    def mark_running(self, run_id: int) -> bool:
        """Move an active run to running and refresh its heartbeat."""
        now = now_ts()
        with self.db.transaction() as conn:
            cursor = conn.execute(f"""
                UPDATE runs SET
                    status = ?,
                    started_at = COALESCE(started_at, ?),
                    last_heartbeat = ?
                WHERE id = ? AND status IN ({placeholders(ACTIVE_RUN_STATUSES)})
            """, (
                RunStatus.RUNNING.value, now, now, run_id,
                *status_values(ACTIVE_RUN_STATUSES)
            ))
            return cursor.rowcount > 0

    def update_heartbeat(self, run_id: int) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE runs SET last_heartbeat = ? WHERE id = ?",
                (now_ts(), run_id)
            )

    def delete(self, run: Run) -> bool:
        """Delete a run; its jobs are kept and become orphaned."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM runs WHERE id = ?", (run.id,))
            deleted = cursor.rowcount > 0
        if deleted:
            self.logger.info(f"Run {run.id} deleted")
        return deleted

    def attempt_atomic_completion(self, run_id: int) -> bool:
        """
        Finalize a run once none of its jobs is pending or in progress.

        The run becomes failed when any job failed, completed otherwise.
        Runs under the write lock, so of two concurrent callers exactly one
        performs the transition.

        Returns:
            True if this call finalized the run, False if it was already
            terminal or still has active jobs
        """
        with self.db.immediate_transaction() as conn:
            row = conn.execute("SELECT status FROM runs WHERE id = ?", (run_id,)).fetchone()
            if row is None:
                raise RunNotFoundError(run_id)
            if is_run_terminal(RunStatus(row['status'])):
                return False

            job_statuses = [
                JobStatus(r['status']) for r in conn.execute(
                    "SELECT DISTINCT status FROM jobs WHERE run_id = ?",
                    (run_id,)
                ).fetchall()
            ]
            final_status = final_run_status(job_statuses)
            if final_status is None:
                return False

            conn.execute(
                "UPDATE runs SET status = ?, completed_at = ? WHERE id = ?",
                (final_status.value, now_ts(), run_id)
            )

        self.logger.info(f"Run {run_id} finalized as {final_status.value}")
        return True


class JobStatsRepository:
    """Aggregate job counts for progress reporting."""

    def __init__(self, database: Database = None):
        self.db = database or get_database()

    def get_run_progress(self, run_id: int) -> Dict[str, int]:
        """Job counts by status for a run, plus the total."""
        progress = {status.value: 0 for status in JobStatus}
        rows = self.db.fetchall("""
            SELECT status, COUNT(*) AS total FROM jobs
            WHERE run_id = ? GROUP BY status
        """, (run_id,))
        for row in rows:
            progress[row['status']] = row['total']
        progress['total'] = sum(progress[status.value] for status in JobStatus)
        return progress

    def get_waiting_stats(self, lang_from: str = None) -> Dict[str, Dict[str, Dict[str, int]]]:
        """Pending and failed job counts per content type and target language."""
        sql = """
            SELECT content_type, lang_to,
                SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) AS pending,
                SUM(CASE WHEN status = ? THEN 1 ELSE 0 END) AS failed
            FROM jobs
            WHERE status IN (?, ?)
        """
        params = [
            JobStatus.PENDING.value, JobStatus.FAILED.value,
            JobStatus.PENDING.value, JobStatus.FAILED.value
        ]
        if lang_from:
            sql += " AND lang_from = ?"
            params.append(lang_from)
        sql += " GROUP BY content_type, lang_to"

        stats: Dict[str, Dict[str, Dict[str, int]]] = {}
        for row in self.db.fetchall(sql, tuple(params)):
            stats.setdefault(row['content_type'], {})[row['lang_to']] = {
                'pending': row['pending'] or 0,
                'failed': row['failed'] or 0,
            }
        return stats
