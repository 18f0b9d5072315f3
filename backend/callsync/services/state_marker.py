"""流水线进度标记

通话记录的 summary 字段对外承担进度展示的作用，前端和运维人员依赖
这些固定文本判断记录所处阶段。内部状态保存在 analysis_state /
failure_kind 中，此模块负责把内部状态渲染成对外可见的标记文本。
"""

from callsync.models.call_record import FailureKind

PENDING_ANALYSIS = "Pending AI analysis"
PENDING_TRANSCRIPTION = "Pending transcription"
TRANSCRIBING = "Transcribing..."
TRANSCRIPTION_COMPLETE = "Transcription complete"
TRANSCRIPTION_FAILED = "Transcription failed"
NO_RECORDING_URL = "No recording URL"
RECORDING_NOT_AVAILABLE = "Recording not available on server"
RECORDING_STILL_PROCESSING = "Recording still processing on server"

# 失败原因 -> 展示文本（不含 "Transcription failed: " 前缀）
_FAILURE_TEXT = {
    FailureKind.CREDITS_EXHAUSTED: "AI credits exhausted (402)",
    FailureKind.RATE_LIMITED: "AI rate limited (429)",
    FailureKind.FETCH_TIMEOUT: "Audio fetch timeout",
}

# 通用错误信息截断长度
MAX_DETAIL_LENGTH = 100


def render_failure(kind: FailureKind, detail: str = "") -> str:
    """渲染失败标记

    Args:
        kind: 失败原因类型
        detail: 错误详情（录音下载失败、其他错误时使用）

    Returns:
        str: 展示用标记文本
    """
    if kind == FailureKind.NO_RECORDING:
        return NO_RECORDING_URL

    text = _FAILURE_TEXT.get(kind)
    if text is None:
        if kind == FailureKind.FETCH_FAILED:
            text = f"Recording fetch failed: {detail}"
        else:
            text = detail[:MAX_DETAIL_LENGTH] or "Unknown error"
    return f"{TRANSCRIPTION_FAILED}: {text}"
