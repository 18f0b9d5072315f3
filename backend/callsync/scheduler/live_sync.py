"""实时同步调度器

开启实时模式后立即同步一次，之后每 60 秒同步一次（窗口为昨天到今天，
覆盖跨零点的录音），另有每 30 秒的健康检查只根据距上次成功同步的
时间重新判断 healthy / stale，不访问服务器。

客户端请求超时不算失败：服务端同步可能比客户端超时更久，仍在进行中。
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from callsync.config import settings

NO_INTEGRATION_MARKER = "No VICIdial integration"
NO_INTEGRATION_ERROR = "No integration configured"

# 表示客户端发送失败 / 超时的错误文本
_TIMEOUT_MARKERS = ("Failed to send", "timed out")

SyncFn = Callable[[date, date], Awaitable[dict[str, Any]]]


class HealthStatus(str, Enum):
    """实时同步健康状态"""

    IDLE = "idle"  # 未开启，或已开启但尚未同步成功
    HEALTHY = "healthy"
    STALE = "stale"  # 距上次成功同步过久，或未配置集成
    ERROR = "error"  # 上次同步出现真正的错误


@dataclass
class LiveSyncState:
    is_live: bool = False
    is_syncing: bool = False
    status: HealthStatus = HealthStatus.IDLE
    last_sync_at: datetime | None = None
    last_error: str | None = None
    last_result: dict[str, Any] | None = None


def compute_health(
    is_live: bool,
    last_sync_at: datetime | None,
    status: HealthStatus,
    now: datetime,
    threshold_seconds: float = 120.0,
) -> HealthStatus:
    """计算健康状态

    error 状态保持到下一次同步成功为止。
    """
    if not is_live:
        return HealthStatus.IDLE
    if status == HealthStatus.ERROR:
        return HealthStatus.ERROR
    if last_sync_at is None:
        return HealthStatus.STALE if status == HealthStatus.STALE else HealthStatus.IDLE
    elapsed = (now - last_sync_at).total_seconds()
    return HealthStatus.HEALTHY if elapsed < threshold_seconds else HealthStatus.STALE


def is_client_timeout(exc: BaseException) -> bool:
    """是否为客户端超时 / 发送失败"""
    if isinstance(exc, httpx.TimeoutException):
        return True
    message = str(exc)
    return any(marker in message for marker in _TIMEOUT_MARKERS)


class LiveSyncSupervisor:
    """实时同步调度器

    使用示例:
        ```python
        api = PipelineApiClient()
        supervisor = LiveSyncSupervisor(
            sync_fn=lambda start, end: api.sync_dialer(owner_id, start, end),
        )
        await supervisor.start()
        ...
        await supervisor.stop()
        ```
    """

    def __init__(
        self,
        sync_fn: SyncFn,
        clock: Callable[[], datetime] = datetime.now,
        sync_interval: float | None = None,
        health_interval: float | None = None,
        healthy_threshold: float | None = None,
        on_synced: Callable[[dict[str, Any]], None] | None = None,
    ):
        self._sync_fn = sync_fn
        self._clock = clock
        self.sync_interval = sync_interval or settings.live_sync_interval
        self.health_interval = health_interval or settings.live_health_interval
        self.healthy_threshold = healthy_threshold or settings.live_healthy_threshold
        self._on_synced = on_synced
        self.state = LiveSyncState()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def status(self) -> HealthStatus:
        return self.state.status

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self) -> None:
        """开启实时模式：立即同步一次并启动两个定时器"""
        if self.state.is_live:
            return
        self.state.is_live = True

        self._scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,  # 合并错过的执行
                "max_instances": 1,  # 防止并发执行
                "misfire_grace_time": 30,
            },
        )
        self._scheduler.start()
        self._scheduler.add_job(
            self.sync_once,
            trigger=IntervalTrigger(seconds=self.sync_interval),
            id="live-sync",
            next_run_time=datetime.now(),
        )
        self._scheduler.add_job(
            self._health_job,
            trigger=IntervalTrigger(seconds=self.health_interval),
            id="live-health",
        )
        logger.info(
            f"实时同步已开启: 同步间隔 {self.sync_interval}s, 健康检查间隔 {self.health_interval}s"
        )

    async def stop(self) -> None:
        """关闭实时模式：取消定时器，状态置为 idle"""
        self.state.is_live = False
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self.state.status = HealthStatus.IDLE
        logger.info("实时同步已关闭")

    async def _health_job(self) -> None:
        self.check_health()

    def check_health(self) -> HealthStatus:
        """根据距上次成功同步的时间重新计算状态"""
        self.state.status = compute_health(
            self.state.is_live,
            self.state.last_sync_at,
            self.state.status,
            self._clock(),
            self.healthy_threshold,
        )
        return self.state.status

    async def sync_once(self) -> dict[str, Any] | None:
        """执行一次同步（上一次仍在进行时跳过）"""
        if self.state.is_syncing:
            logger.debug("上一次同步仍在进行，跳过")
            return None

        self.state.is_syncing = True
        today = self._clock().date()
        try:
            result = await self._sync_fn(today - timedelta(days=1), today)
        except Exception as e:
            self._handle_failure(e)
            return None
        finally:
            self.state.is_syncing = False

        self.state.last_sync_at = self._clock()
        self.state.status = HealthStatus.HEALTHY
        self.state.last_error = None
        self.state.last_result = result
        logger.info(f"实时同步完成: 新增 {result.get('inserted', 0)} 条")

        if self._on_synced is not None:
            self._on_synced(result)
        return result

    def _handle_failure(self, exc: Exception) -> None:
        message = getattr(exc, "message", None) or str(exc)

        if is_client_timeout(exc):
            # 服务端可能仍在同步
            logger.info(f"实时同步请求超时，服务端可能仍在处理: {message}")
            self.state.last_sync_at = self._clock()
            self.state.status = HealthStatus.HEALTHY
            self.state.last_error = None
        elif NO_INTEGRATION_MARKER in message:
            logger.warning("实时同步: 未配置拨号器集成")
            self.state.status = HealthStatus.STALE
            self.state.last_error = NO_INTEGRATION_ERROR
        else:
            logger.error(f"实时同步失败: {message}")
            self.state.status = HealthStatus.ERROR
            self.state.last_error = message
