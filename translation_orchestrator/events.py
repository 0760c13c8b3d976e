"""
Lifecycle Events
================
Callback registry owned by the orchestrator and passed explicitly to the
stores and services that raise lifecycle events.
"""
import threading
from collections import defaultdict
from enum import Enum
from typing import Callable, Dict, List


class LifecycleEvent(str, Enum):
    """Events raised after state transitions."""
    TASK_SAVED = "task_saved"
    JOB_SAVED = "job_saved"
    JOB_COMPLETED = "job_completed"
    JOB_FAILED = "job_failed"
    RUN_CREATED = "run_created"
    RUN_CANCELLED = "run_cancelled"
    RUN_COMPLETED = "run_completed"
    RUN_DELETED = "run_deleted"
    DISCOVERY_CYCLE_COMPLETED = "discovery_cycle_completed"
    RECOVERY_COMPLETED = "recovery_completed"
    MEMORY_WARNING = "memory_warning"


class EventRegistry:
    """
    Synchronous observer registry.

    Callbacks run in the emitting thread, in subscription order, right after
    the state change they describe has been committed. Exceptions raised by
    a callback propagate to the emitter.
    """

    def __init__(self):
        self._callbacks: Dict[LifecycleEvent, List[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: LifecycleEvent, callback: Callable) -> None:
        with self._lock:
            if callback not in self._callbacks[event]:
                self._callbacks[event].append(callback)

    def unsubscribe(self, event: LifecycleEvent, callback: Callable) -> None:
        with self._lock:
            if callback in self._callbacks[event]:
                self._callbacks[event].remove(callback)

    def has_subscribers(self, event: LifecycleEvent) -> bool:
        return bool(self._callbacks.get(event))

    def emit(self, event: LifecycleEvent, *args, **kwargs) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(event, ()))
        for callback in callbacks:
            callback(*args, **kwargs)
