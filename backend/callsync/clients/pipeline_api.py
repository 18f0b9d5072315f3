"""流水线 API 客户端

实时同步和自动转写调度器通过 HTTP 调用本服务的接口，响应为
{code, message, data} 统一格式，这里负责拆包。
"""

from datetime import date
from typing import Any

from loguru import logger

from callsync.config import settings
from callsync.utils.http_client import http_client


class PipelineApiError(Exception):
    """流水线接口返回错误"""

    def __init__(self, message: str, code: int | None = None, data: Any = None):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(message)


class PipelineApiClient:
    """流水线 API 客户端

    使用示例:
        ```python
        client = PipelineApiClient("http://localhost:8000/api/v1")
        result = await client.sync_dialer("user-1", date_from, date_to)
        ```
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.pipeline_api_url).rstrip("/")
        self.timeout = timeout or settings.pipeline_api_timeout

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """发送 POST 请求并返回 data

        Raises:
            PipelineApiError: 响应码非 200
            httpx.HTTPError: 网络错误（含超时）
        """
        body = {k: v for k, v in payload.items() if v is not None}
        async with http_client(base_url=self.base_url, timeout=self.timeout, http2=False) as client:
            response = await client.post(path, json=body)

        try:
            result = response.json()
        except ValueError:
            raise PipelineApiError(f"HTTP {response.status_code}", code=response.status_code)

        code = result.get("code", response.status_code)
        if code != 200:
            message = result.get("message") or f"HTTP {response.status_code}"
            logger.debug(f"流水线接口返回错误 {path}: {message}")
            raise PipelineApiError(message, code=code, data=result.get("data"))
        return result.get("data") or {}

    async def sync_dialer(
        self,
        owner_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
        agent_ids: list[str] | None = None,
    ) -> dict[str, Any]:
        return await self._post(
            "/dialer/sync",
            {
                "owner_id": owner_id,
                "date_from": date_from.isoformat() if date_from else None,
                "date_to": date_to.isoformat() if date_to else None,
                "agent_ids": agent_ids,
            },
        )

    async def retry_recordings(
        self,
        min_age_seconds: int | None = None,
        limit: int | None = None,
        owner_id: str | None = None,
    ) -> dict[str, Any]:
        return await self._post(
            "/recordings/retry",
            {"min_age_seconds": min_age_seconds, "limit": limit, "owner_id": owner_id},
        )

    async def transcribe_pending(
        self,
        limit: int | None = None,
        concurrency: int | None = None,
        owner_id: str | None = None,
    ) -> dict[str, Any]:
        return await self._post(
            "/transcription/run",
            {"limit": limit, "concurrency": concurrency, "owner_id": owner_id},
        )

    async def transcribe_record(self, record_id: int) -> dict[str, Any]:
        return await self._post("/transcription/run", {"record_id": record_id})
