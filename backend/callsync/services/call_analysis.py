"""AI 分析结果解析

模型回复中可能夹带说明文字，这里截取第一个 "{" 到最后一个 "}"
之间的内容作为 JSON 解析，并对枚举字段做校验和兜底。
"""

import json
import re
from typing import Any

from loguru import logger

from callsync.models.call_record import CallStatus, Sentiment
from callsync.services.state_marker import TRANSCRIPTION_COMPLETE

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

_VALID_STATUS = {s.value for s in CallStatus}
_VALID_SENTIMENT = {s.value for s in Sentiment}


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _sentiment(value: Any) -> str | None:
    return value if isinstance(value, str) and value in _VALID_SENTIMENT else None


def parse_analysis(content: str) -> dict[str, Any]:
    """解析模型回复

    Args:
        content: 模型回复原文

    Returns:
        dict: 可直接写入 CallRecord 的字段
            transcript / status / sub_disposition / summary / reason /
            agent_response / customer_response
    """
    content = content or ""
    match = _JSON_BLOCK.search(content)
    if match:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            logger.warning(f"AI 回复 JSON 解析失败，按纯文本保存: {e}")
            data = None
    else:
        data = None

    if not isinstance(data, dict):
        return {
            "transcript": content,
            "status": CallStatus.PENDING.value,
            "sub_disposition": "",
            "summary": TRANSCRIPTION_COMPLETE,
            "reason": "",
            "agent_response": None,
            "customer_response": None,
        }

    status = data.get("status")
    if not (isinstance(status, str) and status in _VALID_STATUS):
        status = CallStatus.PENDING.value
    return {
        "transcript": _text(data.get("transcript"), content),
        "status": status,
        "sub_disposition": _text(data.get("sub_disposition"), "Analyzed"),
        "summary": _text(data.get("summary"), "Call analyzed"),
        "reason": _text(data.get("reason"), "See transcript"),
        "agent_response": _sentiment(data.get("agent_response")),
        "customer_response": _sentiment(data.get("customer_response")),
    }
