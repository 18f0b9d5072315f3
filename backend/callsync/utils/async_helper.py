"""异步辅助工具

Celery Worker 是同步的，服务层是异步的。run_async 把协程放到线程池里
用全新的事件循环执行，与 Worker 自身（可能是 gevent 池）的调度隔离。
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

from loguru import logger

T = TypeVar("T")

_executor: ThreadPoolExecutor | None = None


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="async_runner_")
    return _executor


def run_async(coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
    """在独立线程的新事件循环中运行协程并等待结果

    Args:
        coro: 要执行的协程
        timeout: 等待超时（秒），None 表示一直等待

    Usage:
        result = run_async(sync_recordings(owner_id, date_from, date_to))
    """
    future = _get_executor().submit(asyncio.run, coro)
    try:
        return future.result(timeout=timeout)
    except TimeoutError:
        logger.error(f"异步操作等待超时 ({timeout}s): {coro}")
        raise


async def gather_in_waves(
    coros: list[Coroutine[Any, Any, T]],
    concurrency: int = 5,
) -> list[T | BaseException]:
    """按批次并发运行协程

    每批最多 concurrency 个，一批全部结束后再开始下一批。
    结果与输入顺序对应，异常以对象形式返回。
    """
    concurrency = max(concurrency, 1)
    results: list[T | BaseException] = []
    for i in range(0, len(coros), concurrency):
        results.extend(await asyncio.gather(*coros[i : i + concurrency], return_exceptions=True))
    return results


def shutdown_executor() -> None:
    """关闭线程池"""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=True)
        _executor = None
        logger.debug("异步执行线程池已关闭")
