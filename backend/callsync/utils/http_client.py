"""HTTP 客户端工厂

流水线的外部请求按用途区分客户端配置:
- 录音探测: 短超时，不校验证书（拨号器多为自签名证书）
- 录音下载: 批量模式有超时，单条模式不限制
- 内部接口: 调用本服务 /api/v1，走 HTTP/1.1

客户端随用随建，用完关闭。Celery 中每个任务运行在独立事件循环里，
共享 AsyncClient 会触发 anyio cancel scope 错误。
"""

from collections.abc import AsyncGenerator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import httpx

from callsync.config import settings

_LIMITS = httpx.Limits(max_connections=100, max_keepalive_connections=20)


@asynccontextmanager
async def http_client(
    base_url: str | None = None,
    timeout: float | None = 30.0,
    http2: bool = True,
    verify: bool = True,
    headers: dict[str, str] | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """通用 HTTP 客户端

    Args:
        base_url: 基础 URL
        timeout: 超时时间（秒），None 表示不限制
        http2: 是否启用 HTTP/2
        verify: 是否验证 SSL 证书
        headers: 默认请求头
    """
    client = httpx.AsyncClient(
        base_url=base_url or "",
        timeout=httpx.Timeout(timeout),
        http2=http2,
        verify=verify,
        headers=headers,
        follow_redirects=True,
        limits=_LIMITS,
    )
    try:
        yield client
    finally:
        await client.aclose()


def probe_client() -> AbstractAsyncContextManager[httpx.AsyncClient]:
    """录音探测客户端（HEAD / Range GET）"""
    return http_client(
        timeout=settings.recording_probe_timeout,
        verify=False,
        headers={"User-Agent": settings.dialer_user_agent},
    )


def audio_client(timeout: float | None) -> AbstractAsyncContextManager[httpx.AsyncClient]:
    """录音下载客户端"""
    return http_client(
        timeout=timeout,
        verify=False,
        headers={"User-Agent": settings.dialer_user_agent, "Accept": "audio/*"},
    )
