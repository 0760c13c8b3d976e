"""
Centralized Configuration for the Translation Orchestrator
==========================================================
All configuration values in one place, configurable via environment variables.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


def _get_bool_env(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    elif val in ("false", "0", "no", "off"):
        return False
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get integer from environment variable."""
    try:
        return int(os.environ.get(key, default))
    except (ValueError, TypeError):
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable."""
    try:
        return float(os.environ.get(key, default))
    except (ValueError, TypeError):
        return default


def _get_list_env(key: str, default: List[str]) -> List[str]:
    """Get comma separated list from environment variable."""
    raw = os.environ.get(key)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


APP_DIR = os.environ.get(
    "ORCHESTRATOR_APP_DIR",
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)


@dataclass
class DatabaseConfig:
    """SQLite store configuration."""
    db_path: str = field(default_factory=lambda: os.environ.get(
        "ORCHESTRATOR_DB_PATH", os.path.join(APP_DIR, "orchestrator.db")
    ))
    # Seconds a connection waits on a locked database before giving up
    timeout: float = field(default_factory=lambda: _get_float_env("ORCHESTRATOR_DB_TIMEOUT", 30.0))


@dataclass
class LanguageConfig:
    """Language topology used by discovery and on-demand translation."""
    default_language: str = field(default_factory=lambda: os.environ.get("ORCHESTRATOR_DEFAULT_LANGUAGE", "en"))
    target_languages: List[str] = field(default_factory=lambda: _get_list_env(
        "ORCHESTRATOR_TARGET_LANGUAGES", ["es", "fr", "de"]
    ))
    document_types: List[str] = field(default_factory=lambda: _get_list_env(
        "ORCHESTRATOR_DOCUMENT_TYPES", ["post", "page"]
    ))
    term_groups: List[str] = field(default_factory=lambda: _get_list_env(
        "ORCHESTRATOR_TERM_GROUPS", ["category", "post_tag"]
    ))


@dataclass
class DiscoveryConfig:
    """Coverage discovery cycle configuration."""
    interval: int = field(default_factory=lambda: _get_int_env("DISCOVERY_INTERVAL", 30))
    timeout: int = field(default_factory=lambda: _get_int_env("DISCOVERY_TIMEOUT", 25))
    batch_size: int = field(default_factory=lambda: _get_int_env("DISCOVERY_BATCH_SIZE", 300))


@dataclass
class RecoveryConfig:
    """Stale work recovery configuration."""
    stale_job_timeout: int = field(default_factory=lambda: _get_int_env("STALE_JOB_TIMEOUT", 600))
    stale_run_timeout: int = field(default_factory=lambda: _get_int_env("STALE_RUN_TIMEOUT", 900))


@dataclass
class RunConnectorConfig:
    """Batch assignment of jobs to runs."""
    batch_size: int = field(default_factory=lambda: _get_int_env("RUN_BATCH_SIZE", 500))
    batch_size_minimum: int = field(default_factory=lambda: _get_int_env("RUN_BATCH_SIZE_MINIMUM", 100))
    gc_interval: int = field(default_factory=lambda: _get_int_env("RUN_GC_INTERVAL", 1000))
    memory_threshold: float = field(default_factory=lambda: _get_float_env("RUN_MEMORY_THRESHOLD", 0.8))
    # 0 means the total physical memory of the machine
    memory_limit_mb: int = field(default_factory=lambda: _get_int_env("RUN_MEMORY_LIMIT_MB", 0))
    stats_page_size: int = field(default_factory=lambda: _get_int_env("RUN_STATS_PAGE_SIZE", 1000))


@dataclass
class TranslationConfig:
    """Task processing configuration."""
    max_task_attempts: int = field(default_factory=lambda: _get_int_env("MAX_TASK_ATTEMPTS", 3))
    retry_delay: float = field(default_factory=lambda: _get_float_env("RETRY_DELAY", 1.0))
    max_issue_length: int = field(default_factory=lambda: _get_int_env("MAX_ISSUE_LENGTH", 1000))
    max_instructions_length: int = field(default_factory=lambda: _get_int_env("MAX_INSTRUCTIONS_LENGTH", 500))
    max_translation_length: int = field(default_factory=lambda: _get_int_env("MAX_TRANSLATION_LENGTH", 100000))
    website_context: str = field(default_factory=lambda: os.environ.get("TRANSLATION_WEBSITE_CONTEXT", ""))


@dataclass
class OllamaConfig:
    """Ollama API configuration for the default translate function."""
    base_url: str = field(default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434"))
    default_model: str = field(default_factory=lambda: os.environ.get("OLLAMA_DEFAULT_MODEL", "qwen2.5:14b"))

    # Timeouts
    connect_timeout: int = field(default_factory=lambda: _get_int_env("OLLAMA_CONNECT_TIMEOUT", 30))
    read_timeout: int = field(default_factory=lambda: _get_int_env("OLLAMA_READ_TIMEOUT", 300))
    health_check_timeout: int = field(default_factory=lambda: _get_int_env("OLLAMA_HEALTH_TIMEOUT", 5))
    max_retries: int = field(default_factory=lambda: _get_int_env("OLLAMA_MAX_RETRIES", 2))

    # Generation parameters
    temperature: float = field(default_factory=lambda: _get_float_env("OLLAMA_TEMPERATURE", 0.3))
    top_p: float = field(default_factory=lambda: _get_float_env("OLLAMA_TOP_P", 0.9))

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/generate"

    @property
    def model_list_url(self) -> str:
        return f"{self.base_url}/api/tags"


@dataclass
class WorkerConfig:
    """Background worker polling configuration."""
    poll_interval: float = field(default_factory=lambda: _get_float_env("WORKER_POLL_INTERVAL", 1.0))
    error_backoff: float = field(default_factory=lambda: _get_float_env("WORKER_ERROR_BACKOFF", 5.0))


@dataclass
class LoggingConfig:
    """Logging configuration."""
    verbose_debug: bool = field(default_factory=lambda: _get_bool_env("VERBOSE_DEBUG", False))
    log_dir: str = field(default_factory=lambda: os.environ.get(
        "ORCHESTRATOR_LOG_DIR", os.path.join(APP_DIR, "logs")
    ))
    activity_log_size: int = field(default_factory=lambda: _get_int_env("ACTIVITY_LOG_SIZE", 500))
    log_file_max_bytes: int = field(default_factory=lambda: _get_int_env("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))
    log_file_backup_count: int = field(default_factory=lambda: _get_int_env("LOG_FILE_BACKUP_COUNT", 5))

    @property
    def log_folder(self) -> Path:
        return Path(self.log_dir)


@dataclass
class Config:
    """Main orchestrator configuration container."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    languages: LanguageConfig = field(default_factory=LanguageConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)
    run_connector: RunConnectorConfig = field(default_factory=RunConnectorConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.run_connector.batch_size_minimum < 1:
            raise ValueError("batch_size_minimum must be at least 1")
        if self.run_connector.batch_size < self.run_connector.batch_size_minimum:
            raise ValueError("batch_size must not be smaller than batch_size_minimum")
        if not 0 < self.run_connector.memory_threshold <= 1:
            raise ValueError("memory_threshold must be between 0 and 1")
        if self.translation.max_task_attempts < 1:
            raise ValueError("max_task_attempts must be at least 1")
        if self.discovery.batch_size < 1:
            raise ValueError("discovery batch_size must be at least 1")
        if self.discovery.timeout >= self.discovery.interval:
            raise ValueError("discovery timeout must be shorter than its interval")
        if self.recovery.stale_job_timeout < 1:
            raise ValueError("stale_job_timeout must be positive")


# Global configuration instance
config = Config()
