"""Celery 任务基类

同名任务（按用户区分）互斥执行，Beat 重叠调度时后到的任务直接丢弃，
并记录每次执行的耗时。
"""

from datetime import datetime
from typing import Any

from celery import Task
from celery.exceptions import Reject
from loguru import logger

from callsync.config import settings
from callsync.utils.task_lock import TaskLock


class PipelineTask(Task):
    """流水线任务基类

    使用示例:
        @celery_app.task(base=PipelineTask, name="callsync.retry_recordings", bind=True)
        def retry_recordings_task(self, limit: int | None = None):
            ...
    """

    # 网络抖动类错误自动重试
    autoretry_for = (ConnectionError, TimeoutError, OSError)
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True
    max_retries = 3

    acks_late = True
    reject_on_worker_lost = True

    use_lock = True
    lock_timeout = settings.celery_task_default_timeout
    lock_key_prefix = "task_lock"

    _lock: TaskLock | None = None
    _started_at: datetime | None = None

    def lock_key(self, kwargs: dict[str, Any]) -> str:
        """锁 key，带 owner_id 时不同用户可以并行"""
        owner_id = kwargs.get("owner_id")
        if owner_id:
            return f"{self.lock_key_prefix}:{self.name}:{owner_id}"
        return f"{self.lock_key_prefix}:{self.name}"

    def before_start(self, task_id: str, args: tuple, kwargs: dict[str, Any]) -> None:
        """获取锁，失败时拒绝任务（不重新入队）"""
        self._started_at = datetime.now()
        self._lock = None
        if not self.use_lock:
            return

        lock = TaskLock(self.lock_key(kwargs), self.lock_timeout)
        if not lock.acquire():
            logger.info(f"任务 {self.name} 正在执行中，跳过本次: {lock.key}")
            raise Reject(f"任务正在执行中: {lock.key}", requeue=False)
        self._lock = lock

    def after_return(
        self,
        status: str,
        retval: Any,
        task_id: str,
        args: tuple,
        kwargs: dict[str, Any],
        einfo: Any,
    ) -> None:
        """释放锁并记录耗时"""
        if self._lock is not None:
            self._lock.release()
            self._lock = None

        elapsed = (datetime.now() - self._started_at).total_seconds() if self._started_at else 0.0
        self._started_at = None

        if status == "SUCCESS":
            logger.info(f"任务 {self.name} 完成, 耗时 {elapsed:.2f}s")
        elif status == "FAILURE":
            logger.error(f"任务 {self.name} 失败, 耗时 {elapsed:.2f}s: {retval}")

    def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict[str, Any], einfo: Any) -> None:
        """重试前释放锁，重试的任务重新抢锁"""
        logger.warning(
            f"任务 {self.name} 将重试 ({self.request.retries}/{self.max_retries}): "
            f"{exc.__class__.__name__}: {exc}"
        )
        if self._lock is not None:
            self._lock.release()
            self._lock = None
