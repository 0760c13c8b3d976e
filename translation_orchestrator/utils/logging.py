"""
Logging Utilities
=================
Per-subsystem loggers writing to rotating files and the console, plus an
in-memory activity log of recent orchestration events.

The activity log keeps the last ``activity_log_size`` entries. Entries carry
an increasing id so a reader can poll for everything newer than the last
entry it saw.
"""
import os
import re
import logging
import threading
from collections import deque
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import List, Dict, Optional, Any
from translation_orchestrator.config import config

ANSI_PATTERN = re.compile(r'\033\[[0-9;]*m')

# Attribute on AppLogger -> (logger name, file name)
SUBSYSTEM_LOGGERS = {
    'app_logger': ('orchestrator.app', 'app.log'),
    'job_logger': ('orchestrator.jobs', 'jobs.log'),
    'discovery_logger': ('orchestrator.discovery', 'discovery.log'),
    'recovery_logger': ('orchestrator.recovery', 'recovery.log'),
    'db_logger': ('orchestrator.database', 'database.log'),
}


class ActivityLog:
    """Bounded, thread-safe record of recent runs, jobs and sweeps."""

    def __init__(self, max_size: int = None):
        self._entries = deque(maxlen=max_size or config.logging.activity_log_size)
        self._lock = threading.Lock()
        self.last_id = 0

    def record(
        self,
        level: str,
        source: str,
        message: str,
        event_type: str = None,
        run_id: int = None,
        job_id: int = None
    ) -> Dict[str, Any]:
        """Append an entry and return it."""
        with self._lock:
            self.last_id += 1
            entry = {
                'id': self.last_id,
                'timestamp': datetime.now().strftime('%H:%M:%S.%f')[:-3],
                'level': level,
                'source': source,
                'message': ANSI_PATTERN.sub('', message),
                'event_type': event_type,
                'run_id': run_id,
                'job_id': job_id,
            }
            self._entries.append(entry)
            return entry

    def recent(
        self,
        since_id: int = 0,
        event_type: str = None,
        run_id: int = None
    ) -> List[Dict[str, Any]]:
        """
        Entries newer than since_id, oldest first.

        Args:
            since_id: Id of the last entry the caller has seen
            event_type: Only entries of this event type
            run_id: Only entries about this run
        """
        with self._lock:
            return [
                entry for entry in self._entries
                if entry['id'] > since_id
                and (event_type is None or entry['event_type'] == event_type)
                and (run_id is None or entry['run_id'] == run_id)
            ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.last_id = 0


activity_log = ActivityLog()


class ANSIStripFormatter(logging.Formatter):
    """Formatter that strips ANSI codes for file output."""

    def format(self, record):
        return ANSI_PATTERN.sub('', super().format(record))


class AppLogger:
    """Holds one named logger per orchestrator subsystem."""

    def __init__(self, log_dir: str = None):
        self.log_dir = log_dir or config.logging.log_folder
        os.makedirs(self.log_dir, exist_ok=True)
        self.level = logging.DEBUG if config.logging.verbose_debug else logging.INFO

        for attribute, (name, filename) in SUBSYSTEM_LOGGERS.items():
            setattr(self, attribute, self._setup_logger(name, filename))

    def _setup_logger(self, name: str, filename: str) -> logging.Logger:
        logger = logging.getLogger(name)
        logger.setLevel(self.level)

        # Loggers are process-wide; a second AppLogger must not add handlers twice
        if not logger.handlers:
            logger.addHandler(self._file_handler(filename))
            logger.addHandler(self._console_handler())
        return logger

    def _file_handler(self, filename: str) -> logging.Handler:
        handler = RotatingFileHandler(
            os.path.join(self.log_dir, filename),
            maxBytes=config.logging.log_file_max_bytes,
            backupCount=config.logging.log_file_backup_count
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(ANSIStripFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        return handler

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler()
        handler.setLevel(self.level)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s', datefmt='%H:%M:%S'))
        return handler


_logger_instance: Optional[AppLogger] = None


def get_logger() -> AppLogger:
    """Get or create the process-wide AppLogger."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = AppLogger()
    return _logger_instance


def debug_print(message: str, level: str = 'INFO', source: str = 'DEBUG'):
    """
    Record a message in the activity log and echo it when verbose.

    Args:
        message: The message to log
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        source: Source identifier (e.g. DISCOVERY, RECOVERY, RUN)
    """
    activity_log.record(level, source, message)
    if config.logging.verbose_debug:
        print(message)
