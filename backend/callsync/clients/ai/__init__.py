"""AI 客户端"""

from callsync.clients.ai.base import AIClient, AIClientError, ChatResponse
from callsync.clients.ai.gateway import GatewayClient
from callsync.config import settings

__all__ = ["AIClient", "AIClientError", "ChatResponse", "GatewayClient", "get_ai_client"]


def get_ai_client() -> AIClient:
    """按配置创建 AI 客户端"""
    return GatewayClient(api_key=settings.ai_api_key)
