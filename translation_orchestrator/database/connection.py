"""
Database Connection Manager
===========================
Handles SQLite database connections with proper context management.
"""
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.utils.logging import get_logger


class Database:
    """
    Thread-safe SQLite database manager.

    Every thread gets its own connection. Cross-worker exclusion relies on
    SQLite's write lock, taken up front by ``immediate_transaction``.
    """

    _instance: Optional['Database'] = None
    _lock = threading.Lock()

    def __init__(self, db_path: Path = None, config: Config = None):
        self.config = config or default_config
        self.db_path = Path(db_path or self.config.database.db_path)
        self.logger = get_logger().db_logger
        self._local = threading.local()
        self._init_lock = threading.Lock()
        self._initialized = False

        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def get_instance(cls, db_path: Path = None) -> 'Database':
        """Get singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls(db_path)
            return cls._instance

    @property
    def connection(self) -> sqlite3.Connection:
        """Get thread-local connection."""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            self._local.connection = self._create_connection()
        return self._local.connection

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.config.database.timeout
        )
        conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA cache_size=10000")
        conn.execute("PRAGMA foreign_keys=ON")

        return conn

    def initialize(self) -> 'Database':
        """Initialize database schema."""
        if self._initialized:
            return self

        with self._init_lock:
            if self._initialized:
                return self

            self._create_tables()
            self._create_indexes()
            self._initialized = True

            self.logger.info(f"Database initialized: {self.db_path}")
        return self

    def _create_tables(self) -> None:
        """Create database tables."""
        with self.connection:
            self.connection.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    config TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    started_at INTEGER,
                    last_heartbeat INTEGER,
                    completed_at INTEGER,
                    CONSTRAINT valid_run_status CHECK (
                        status IN ('pending', 'running', 'completed', 'failed', 'cancelled')
                    )
                )
            """)

            self.connection.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    type TEXT NOT NULL,
                    content_type TEXT NOT NULL DEFAULT '',
                    id_from INTEGER NOT NULL,
                    id_to INTEGER,
                    lang_from TEXT NOT NULL,
                    lang_to TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    run_id INTEGER,
                    created_at INTEGER NOT NULL,
                    started_at INTEGER,
                    completed_at INTEGER,
                    FOREIGN KEY (run_id) REFERENCES runs(id) ON DELETE SET NULL,
                    CONSTRAINT valid_job_type CHECK (type IN ('document', 'term')),
                    CONSTRAINT valid_job_status CHECK (
                        status IN ('pending', 'in_progress', 'completed', 'failed', 'cancelled')
                    )
                )
            """)

            self.connection.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id INTEGER NOT NULL,
                    reference TEXT NOT NULL,
                    value TEXT NOT NULL DEFAULT '',
                    translation TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    attempts INTEGER NOT NULL DEFAULT 0,
                    issue TEXT,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    FOREIGN KEY (job_id) REFERENCES jobs(id) ON DELETE CASCADE,
                    CONSTRAINT valid_task_status CHECK (
                        status IN ('pending', 'in_progress', 'completed', 'failed')
                    )
                )
            """)

    def _create_indexes(self) -> None:
        """Create database indexes for performance."""
        with self.connection:
            # Duplicate check and coverage lookups
            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_content
                ON jobs(type, id_from, lang_from, lang_to, status)
            """)
            # Claiming and run progress
            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_run_status
                ON jobs(run_id, status, id)
            """)
            # Stale job detection
            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_status_started
                ON jobs(status, started_at)
            """)
            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_target
                ON jobs(type, id_to)
            """)

            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_job_reference
                ON tasks(job_id, reference)
            """)

            self.connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_status
                ON runs(status)
            """)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database transactions."""
        conn = self.connection
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            self.logger.error(f"Transaction rolled back: {e}")
            raise

    @contextmanager
    def immediate_transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Transaction that takes the database write lock before its first read.

        Concurrent callers queue on the lock (up to the configured busy
        timeout), so a read-then-write sequence inside it cannot interleave
        with another writer.
        """
        conn = self.connection
        if conn.in_transaction:
            conn.commit()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            self.logger.error(f"Immediate transaction rolled back: {e}")
            raise

    def execute(
        self,
        query: str,
        params: tuple = None
    ) -> sqlite3.Cursor:
        """Execute a query."""
        try:
            if params:
                return self.connection.execute(query, params)
            return self.connection.execute(query)
        except sqlite3.Error as e:
            self.logger.error(f"Database error: {e}")
            raise

    def fetchone(
        self,
        query: str,
        params: tuple = None
    ) -> Optional[sqlite3.Row]:
        """Execute query and fetch one result."""
        cursor = self.execute(query, params)
        try:
            return cursor.fetchone()
        finally:
            # Release the statement so no read snapshot outlives the call
            cursor.close()

    def fetchall(
        self,
        query: str,
        params: tuple = None
    ) -> list:
        """Execute query and fetch all results."""
        cursor = self.execute(query, params)
        return cursor.fetchall()

    def close(self) -> None:
        """Close thread-local connection."""
        if hasattr(self._local, 'connection') and self._local.connection:
            self._local.connection.close()
            self._local.connection = None


# Global accessor
_database: Optional[Database] = None


def get_database() -> Database:
    """Get database singleton."""
    global _database
    if _database is None:
        _database = Database.get_instance()
        _database.initialize()
    return _database


def reset_database() -> None:
    """Reset database singleton (for testing)."""
    global _database
    if _database:
        _database.close()
    _database = None
    Database._instance = None


def placeholders(values) -> str:
    """Comma separated ``?`` placeholders for an IN clause."""
    return ", ".join("?" for _ in values)
