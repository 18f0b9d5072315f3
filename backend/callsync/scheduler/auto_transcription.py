"""自动转写触发器

多次 "有 N 条记录待转写" 的信号在 3 秒内合并为一次批量转写，
N 取最后一次信号的值。批量转写进行中时到期的触发直接丢弃，
由下一次信号重新计时。
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

from loguru import logger

from callsync.config import settings

ALREADY_IN_PROGRESS = "Transcription already in progress"
CREDITS_EXHAUSTED = "AI credits exhausted"
RATE_LIMITED = "Rate limit reached"

BatchFn = Callable[[int, int], Awaitable[dict[str, Any]]]
SingleFn = Callable[[int], Awaitable[dict[str, Any]]]


def notice_for(text: str) -> str | None:
    """根据结果或错误文本生成提示"""
    if "402" in text:
        return CREDITS_EXHAUSTED
    if "429" in text:
        return RATE_LIMITED
    return None


def _result_text(result: dict[str, Any]) -> str:
    return " ".join(str(result.get(key) or "") for key in ("error", "message", "summary"))


class AutoTranscriptionTrigger:
    """自动转写触发器

    Args:
        transcribe_batch: 批量转写 (limit, concurrency) -> 结果
        transcribe_one: 单条转写 (record_id) -> 结果
        debounce_seconds: 合并窗口（秒）
        concurrency: 批量转写并发数
        notify: 用户提示回调
    """

    def __init__(
        self,
        transcribe_batch: BatchFn,
        transcribe_one: SingleFn | None = None,
        debounce_seconds: float | None = None,
        concurrency: int | None = None,
        notify: Callable[[str], None] | None = None,
    ):
        self._transcribe_batch = transcribe_batch
        self._transcribe_one = transcribe_one
        self.debounce_seconds = (
            settings.auto_transcribe_debounce if debounce_seconds is None else debounce_seconds
        )
        self.concurrency = concurrency or settings.auto_transcribe_concurrency
        self._notify = notify
        self.pending_count = 0
        self.is_transcribing = False
        self._timer: asyncio.Task | None = None
        self._batch_task: asyncio.Task | None = None

    def signal(self, count: int) -> None:
        """记录待转写数量并重新计时"""
        self.pending_count = count
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire_later())

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if self.is_transcribing:
            logger.debug("批量转写进行中，丢弃本次触发")
            return
        if self.pending_count <= 0:
            return
        limit = self.pending_count
        self.is_transcribing = True
        self._batch_task = asyncio.get_running_loop().create_task(self._run_batch(limit))

    async def _run_batch(self, limit: int) -> None:
        logger.info(f"自动转写: limit={limit}, concurrency={self.concurrency}")
        try:
            result = await self._transcribe_batch(limit, self.concurrency)
            logger.info(
                f"自动转写完成: 成功 {result.get('success_count', 0)}, "
                f"失败 {result.get('fail_count', 0)}"
            )
            self._report(_result_text(result))
        except Exception as e:
            logger.error(f"自动转写失败: {e}")
            self._report(getattr(e, "message", None) or str(e))
        finally:
            self.is_transcribing = False
            self.pending_count = 0

    async def transcribe_now(self, record_id: int) -> dict[str, Any] | None:
        """立即转写指定记录（不合并）

        Returns:
            dict | None: 转写结果，已有转写进行中时返回 None
        """
        if self._transcribe_one is None:
            raise RuntimeError("transcribe_one is not configured")
        if self.is_transcribing:
            self._emit(ALREADY_IN_PROGRESS)
            return None

        self.is_transcribing = True
        try:
            result = await self._transcribe_one(record_id)
        except Exception as e:
            logger.error(f"转写记录 {record_id} 失败: {e}")
            self._report(getattr(e, "message", None) or str(e))
            return None
        finally:
            self.is_transcribing = False

        self._report(_result_text(result))
        return result

    async def drain(self) -> None:
        """等待当前计时和批量转写结束"""
        if self._timer is not None:
            with suppress(asyncio.CancelledError):
                await self._timer
        if self._batch_task is not None:
            await self._batch_task

    async def stop(self) -> None:
        """取消计时，等待进行中的批量转写结束"""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        await self.drain()

    def _report(self, text: str) -> None:
        notice = notice_for(text)
        if notice:
            self._emit(notice)

    def _emit(self, message: str) -> None:
        logger.warning(f"转写提示: {message}")
        if self._notify is not None:
            self._notify(message)
