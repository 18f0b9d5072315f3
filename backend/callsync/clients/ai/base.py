"""AI 客户端基类

转写分析只需要一种调用: 一段系统提示 + 一条包含文本指令和音频的用户消息，
模型一次回复完成转写与分类。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class AIClientError(Exception):
    """AI 客户端异常

    status_code 为网关返回的 HTTP 状态码（网络错误时为 None），
    message 中同样带状态码，上层可以按文本归类。
    """

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


@dataclass
class ChatResponse:
    content: str
    model: str
    tokens_used: int | None = None
    finish_reason: str | None = None


def build_audio_messages(
    audio_base64: str,
    audio_format: str,
    system_prompt: str,
    instruction: str,
) -> list[dict[str, Any]]:
    """构造多模态消息（OpenAI input_audio 格式）"""
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": instruction},
                {
                    "type": "input_audio",
                    "input_audio": {"data": audio_base64, "format": audio_format},
                },
            ],
        },
    ]


class AIClient(ABC):
    """AI 客户端抽象基类"""

    def __init__(self, api_key: str, base_url: str, model: str):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model

    @abstractmethod
    async def complete(self, messages: list[dict[str, Any]], **options: Any) -> ChatResponse:
        """发送对话请求

        Raises:
            AIClientError: 请求失败
        """

    async def transcribe_audio(
        self,
        audio_base64: str,
        audio_format: str,
        system_prompt: str,
        instruction: str = "Transcribe and analyze:",
        **options: Any,
    ) -> ChatResponse:
        """发送音频进行转写分析

        Args:
            audio_base64: Base64 编码的音频
            audio_format: 音频格式（mp3 / wav）
            system_prompt: 系统提示
            instruction: 随音频发送的文本指令
        """
        messages = build_audio_messages(audio_base64, audio_format, system_prompt, instruction)
        return await self.complete(messages, **options)
