"""Celery 应用配置

使用 Redis 作为 broker 和 result backend。录音探测任务由 Beat 按固定
间隔调度，同步和转写任务由接口或其他任务按需投递。
"""

from celery import Celery
from celery.signals import worker_init
from loguru import logger

from callsync.config import settings

celery_app = Celery(
    "callsync",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=["callsync.tasks"],
)

celery_app.conf.update(
    # ---------- 序列化配置 ----------
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # ---------- 时区配置 ----------
    timezone=settings.celery_timezone,
    enable_utc=True,
    # ---------- 任务确认模式 ----------
    # 任务完成后才确认，防止 worker 崩溃导致任务丢失
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # ---------- Redis Broker 配置 ----------
    # 必须大于最长任务的执行时间，否则任务会被重复投递
    broker_transport_options={
        "visibility_timeout": settings.celery_task_default_timeout,
    },
    # ---------- Beat 配置 ----------
    beat_schedule={
        "retry-recordings": {
            "task": "callsync.retry_recordings",
            "schedule": float(settings.recording_retry_interval),
        },
    },
)


@worker_init.connect
def on_worker_init(sender=None, **kwargs):
    """Worker 启动时初始化资源"""
    logger.info("Celery Worker 正在初始化...")

    try:
        from callsync.database import init_db

        init_db()
        logger.info("数据库已初始化")
    except Exception as e:
        logger.error(f"数据库初始化失败: {e}")

    try:
        from callsync.utils.redis_client import get_redis_client

        if get_redis_client():
            logger.info("Redis 连接已建立")
    except Exception as e:
        logger.warning(f"Redis 连接初始化失败: {e}")

    logger.info("Celery Worker 初始化完成")
