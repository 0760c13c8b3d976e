"""
Memory Manager
==============
Process memory probe used to shrink batches before memory runs out.
"""
import gc

import psutil

from translation_orchestrator.config import config as default_config, Config
from translation_orchestrator.utils.logging import get_logger


class MemoryManager:
    """Reports process memory against a limit and triggers collection."""

    def __init__(self, config: Config = None, process: psutil.Process = None):
        self.config = config or default_config
        self.process = process or psutil.Process()
        self.logger = get_logger().app_logger

    def get_usage_bytes(self) -> int:
        """Resident set size of this process."""
        return self.process.memory_info().rss

    def get_limit_bytes(self) -> int:
        """Configured limit, or the machine's physical memory when unset."""
        limit_mb = self.config.run_connector.memory_limit_mb
        if limit_mb > 0:
            return limit_mb * 1024 * 1024
        return psutil.virtual_memory().total

    def get_usage_percent(self) -> float:
        limit = self.get_limit_bytes()
        if limit <= 0:
            return 0.0
        return self.get_usage_bytes() / limit

    def is_approaching_limit(self, threshold: float = None) -> bool:
        threshold = threshold if threshold is not None else self.config.run_connector.memory_threshold
        return self.get_usage_percent() >= threshold

    def collect_garbage(self) -> int:
        collected = gc.collect()
        self.logger.debug(f"Garbage collection freed {collected} objects")
        return collected
