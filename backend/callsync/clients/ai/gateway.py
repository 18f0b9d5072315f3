"""OpenAI 兼容 AI 网关客户端

网关暴露 /chat/completions 接口，支持 input_audio 多模态输入。
402 表示额度用尽，429 表示被限流，两者都按状态码原样抛出。
"""

from typing import Any

import httpx
from loguru import logger

from callsync.clients.ai.base import AIClient, AIClientError, ChatResponse
from callsync.config import settings


class GatewayClient(AIClient):
    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(
            api_key,
            (base_url or settings.ai_base_url).rstrip("/"),
            model or settings.ai_model,
        )
        self.timeout = timeout or settings.ai_request_timeout

    async def complete(self, messages: list[dict[str, Any]], **options: Any) -> ChatResponse:
        body = {"model": self.model, "messages": messages, **options}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
        except httpx.TimeoutException as e:
            logger.error(f"AI 网关超时: {e}")
            raise AIClientError(f"AI request timeout: {e}") from e
        except httpx.RequestError as e:
            logger.error(f"AI 网关请求错误: {e}")
            raise AIClientError(f"AI request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"AI 网关错误: HTTP {response.status_code}, {response.text[:200]}")
            raise AIClientError(
                f"AI API error: {response.status_code}",
                code=str(response.status_code),
                status_code=response.status_code,
            )

        result = response.json()
        choice = (result.get("choices") or [{}])[0]
        usage = result.get("usage") or {}
        reply = ChatResponse(
            content=(choice.get("message") or {}).get("content") or "",
            model=result.get("model") or self.model,
            tokens_used=usage.get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
        )
        logger.debug(
            f"AI 网关响应: model={reply.model}, tokens={reply.tokens_used}, "
            f"finish_reason={reply.finish_reason}"
        )
        return reply
