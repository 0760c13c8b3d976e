"""
Activity Recording
==================
Turns lifecycle events into activity log entries, so the recent history of
runs and jobs can be read back through the orchestrator.
"""
from typing import Any, Dict, List, Optional

from translation_orchestrator.config.constants import RunStatus
from translation_orchestrator.events import EventRegistry, LifecycleEvent
from translation_orchestrator.models import Job, Run, DiscoveryCycleResult, RecoveryResult
from translation_orchestrator.utils.logging import ActivityLog, activity_log as default_activity_log


class ActivityRecorder:
    """Subscribes to lifecycle events and records one entry per event."""

    def __init__(self, events: EventRegistry, activity_log: ActivityLog = None):
        self.activity_log = activity_log or default_activity_log
        events.subscribe(LifecycleEvent.RUN_CREATED, self.on_run_created)
        events.subscribe(LifecycleEvent.RUN_CANCELLED, self.on_run_cancelled)
        events.subscribe(LifecycleEvent.RUN_COMPLETED, self.on_run_completed)
        events.subscribe(LifecycleEvent.RUN_DELETED, self.on_run_deleted)
        events.subscribe(LifecycleEvent.JOB_COMPLETED, self.on_job_completed)
        events.subscribe(LifecycleEvent.JOB_FAILED, self.on_job_failed)
        events.subscribe(LifecycleEvent.DISCOVERY_CYCLE_COMPLETED, self.on_discovery_cycle)
        events.subscribe(LifecycleEvent.RECOVERY_COMPLETED, self.on_recovery_completed)
        events.subscribe(LifecycleEvent.MEMORY_WARNING, self.on_memory_warning)

    def on_run_created(self, run: Run, connected: int) -> None:
        langs = ', '.join(lang.upper() for lang in run.config.langs_to)
        self.activity_log.record(
            'INFO', 'RUN',
            f"Translation run #{run.id} created: {run.config.lang_from.upper()} -> {langs}, {connected} jobs",
            event_type=LifecycleEvent.RUN_CREATED.value, run_id=run.id
        )

    def on_run_cancelled(self, run: Run) -> None:
        self.activity_log.record(
            'WARNING', 'RUN', f"Translation run #{run.id} was cancelled",
            event_type=LifecycleEvent.RUN_CANCELLED.value, run_id=run.id
        )

    def on_run_completed(self, run: Run) -> None:
        if run.status == RunStatus.FAILED:
            level, message = 'ERROR', f"Translation run #{run.id} finished with failed jobs"
        else:
            level, message = 'INFO', f"Translation run #{run.id} completed successfully"
        self.activity_log.record(
            level, 'RUN', message,
            event_type=LifecycleEvent.RUN_COMPLETED.value, run_id=run.id
        )

    def on_run_deleted(self, run: Run) -> None:
        self.activity_log.record(
            'INFO', 'RUN', f"Translation run #{run.id} deleted",
            event_type=LifecycleEvent.RUN_DELETED.value, run_id=run.id
        )

    def on_job_completed(self, job: Job) -> None:
        self.activity_log.record(
            'INFO', 'JOB',
            f"Translated {job.content_type} #{job.id_from} from "
            f"{job.lang_from.upper()} to {job.lang_to.upper()} (target #{job.id_to})",
            event_type=LifecycleEvent.JOB_COMPLETED.value, run_id=job.run_id, job_id=job.id
        )

    def on_job_failed(self, job: Job, error: Exception = None) -> None:
        reason = f": {error}" if error else ""
        self.activity_log.record(
            'ERROR', 'JOB',
            f"Failed to translate {job.content_type} #{job.id_from} to {job.lang_to.upper()}{reason}",
            event_type=LifecycleEvent.JOB_FAILED.value, run_id=job.run_id, job_id=job.id
        )

    def on_discovery_cycle(self, result: DiscoveryCycleResult) -> None:
        self.activity_log.record(
            'INFO', 'DISCOVERY',
            f"Discovery found {result.documents_found} documents and {result.terms_found} terms, "
            f"processed {result.processed}",
            event_type=LifecycleEvent.DISCOVERY_CYCLE_COMPLETED.value
        )

    def on_recovery_completed(self, run_id: int, result: RecoveryResult) -> None:
        self.activity_log.record(
            'WARNING', 'RECOVERY',
            f"Run #{run_id}: {result.finished} finished, {result.reset} reset, {result.failed} failed",
            event_type=LifecycleEvent.RECOVERY_COMPLETED.value, run_id=run_id
        )

    def on_memory_warning(self, run_id: int, usage: int, batch_size: int) -> None:
        self.activity_log.record(
            'WARNING', 'MEMORY',
            f"Run #{run_id}: memory at {usage // (1024 * 1024)} MB, batch size {batch_size}",
            event_type=LifecycleEvent.MEMORY_WARNING.value, run_id=run_id
        )

    def recent(
        self,
        since_id: int = 0,
        event_type: Optional[str] = None,
        run_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return self.activity_log.recent(since_id, event_type, run_id)
