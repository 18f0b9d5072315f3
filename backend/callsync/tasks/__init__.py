"""Celery 任务模块"""

from callsync.tasks.pipeline_tasks import (
    retry_recordings_task,
    sync_dialer_task,
    transcribe_pending_task,
    transcribe_record_task,
)

__all__ = [
    "retry_recordings_task",
    "sync_dialer_task",
    "transcribe_pending_task",
    "transcribe_record_task",
]
