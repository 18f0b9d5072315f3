"""SQLModel 数据模型"""

from callsync.models.base import BaseTable
from callsync.models.call_record import (
    AnalysisState,
    CallRecord,
    CallRecordResponse,
    CallStatus,
    FailureKind,
    Sentiment,
    UploadSource,
)
from callsync.models.dialer_integration import DialerIntegration

__all__ = [
    "AnalysisState",
    "BaseTable",
    "CallRecord",
    "CallRecordResponse",
    "CallStatus",
    "DialerIntegration",
    "FailureKind",
    "Sentiment",
    "UploadSource",
]
