"""recording_lookup 响应解析

拨号器以换行分隔、每行管道分隔的文本返回录音列表。不同版本的
VICIdial 返回两种列布局：

布局 A（6 列，首列为开始时间）:
    start_time | agent_user | lead_id | recording_id | length_in_sec | location

布局 B（至少 6 列，首列为录音ID）:
    recording_id | lead_id | ... | start_time(5) | ... | length(7) | filename(8) | location(9) | agent(10)
"""

import re
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# 需要跳过的提示行前缀
_SKIP_PREFIXES = ("ERROR", "NOTICE")
_NO_RECORDINGS = "NO RECORDINGS FOUND"


@dataclass
class DialerRecording:
    """拨号器返回的一条录音信息"""

    recording_id: str
    lead_id: str
    call_time: datetime
    agent_user: str
    length_seconds: int
    location: str

    @property
    def duration(self) -> str:
        return format_duration(self.length_seconds)


def format_duration(seconds: int) -> str:
    """秒数格式化为 M:SS"""
    seconds = max(int(seconds or 0), 0)
    return f"{seconds // 60}:{seconds % 60:02d}"


def _field(parts: list[str], index: int) -> str:
    """安全取列，越界返回空字符串"""
    if index < len(parts):
        return parts[index].strip()
    return ""


def _parse_int(value: str) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _parse_time(value: str, fallback_date: str) -> datetime:
    """解析开始时间，失败时使用查询日期当天 00:00"""
    value = (value or "").strip()
    if _DATETIME_RE.match(value):
        return datetime.strptime(value, _DATETIME_FORMAT)
    return datetime.strptime(fallback_date, "%Y-%m-%d")


def parse_line(line: str, query_date: str, query_agent: str) -> DialerRecording | None:
    """解析单行录音信息

    Args:
        line: 原始行文本
        query_date: 查询日期 "YYYY-MM-DD"（开始时间缺失时兜底）
        query_agent: 查询坐席（坐席列缺失时兜底）

    Returns:
        DialerRecording | None: 无法识别或录音ID非数字时返回 None
    """
    line = line.strip()
    if not line:
        return None
    upper = line.upper()
    if upper.startswith(_SKIP_PREFIXES) or _NO_RECORDINGS in upper:
        return None

    parts = line.split("|")

    if len(parts) == 6 and _DATETIME_RE.match(parts[0].strip()):
        start, agent, lead_id, recording_id, length, location = (p.strip() for p in parts)
    elif len(parts) >= 6:
        recording_id = _field(parts, 0)
        lead_id = _field(parts, 1)
        start = _field(parts, 5)
        length = _field(parts, 7)
        location = _field(parts, 9) or _field(parts, 8)
        agent = _field(parts, 10)
    else:
        logger.debug(f"无法识别的录音行（{len(parts)} 列）: {line[:120]}")
        return None

    if not recording_id.isdigit():
        logger.debug(f"录音ID非数字，跳过: {recording_id!r}")
        return None

    return DialerRecording(
        recording_id=recording_id,
        lead_id=lead_id,
        call_time=_parse_time(start, query_date),
        agent_user=agent or query_agent,
        length_seconds=_parse_int(length),
        location=location,
    )


def parse_recording_lookup(text: str, query_date: str, query_agent: str) -> list[DialerRecording]:
    """解析 recording_lookup 完整响应

    Args:
        text: 响应文本
        query_date: 查询日期
        query_agent: 查询坐席

    Returns:
        list[DialerRecording]: 解析成功的录音列表
    """
    recordings = []
    for line in (text or "").splitlines():
        recording = parse_line(line, query_date, query_agent)
        if recording is not None:
            recordings.append(recording)
    return recordings
