"""流水线任务

拨号器同步、录音探测和 AI 转写的 Celery 任务，业务逻辑在 services 中，
这里通过 run_async 在独立事件循环中调用。
"""

from loguru import logger

from callsync.celery_app import celery_app
from callsync.services import dialer_sync_service, recording_locator_service, transcription_service
from callsync.tasks.base import PipelineTask
from callsync.utils.async_helper import run_async


@celery_app.task(base=PipelineTask, name="callsync.sync_dialer", bind=True)
def sync_dialer_task(
    self,
    owner_id: str,
    date_from: str | None = None,
    date_to: str | None = None,
    agent_ids: list[str] | None = None,
) -> dict:
    """同步拨号器录音"""
    logger.info(f"开始执行拨号器同步任务: owner={owner_id}")
    return run_async(
        dialer_sync_service.sync_recordings(owner_id, date_from, date_to, agent_ids)
    )


@celery_app.task(base=PipelineTask, name="callsync.retry_recordings", bind=True)
def retry_recordings_task(
    self,
    min_age_seconds: int | None = None,
    limit: int | None = None,
    owner_id: str | None = None,
) -> dict:
    """探测仍在转码中的录音（Beat 定时调度）"""
    return run_async(
        recording_locator_service.retry_recordings(min_age_seconds, limit, owner_id)
    )


@celery_app.task(base=PipelineTask, name="callsync.transcribe_pending", bind=True, use_lock=False)
def transcribe_pending_task(
    self,
    limit: int | None = None,
    concurrency: int | None = None,
    owner_id: str | None = None,
) -> dict:
    """批量转写待分析记录

    不加任务锁: 记录逐条条件领取，同一用户的多个批次可以并行，
    后到的触发不会被丢弃。
    """
    logger.info(f"开始执行批量转写任务: owner={owner_id}, limit={limit}")
    return run_async(
        transcription_service.transcribe_pending(limit, concurrency, owner_id)
    )


@celery_app.task(base=PipelineTask, name="callsync.transcribe_record", bind=True, use_lock=False)
def transcribe_record_task(self, record_id: int) -> dict:
    """转写单条记录"""
    return run_async(transcription_service.transcribe_record(record_id))
