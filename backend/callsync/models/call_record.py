"""通话记录数据模型

存储从拨号器同步或手动上传的通话记录，以及 AI 转写分析结果。
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Index, Text
from sqlmodel import Field, SQLModel

from callsync.models.base import BaseTable


class UploadSource(str, Enum):
    """记录来源"""

    MANUAL = "manual"
    DIALER = "dialer"


class CallStatus(str, Enum):
    """通话结果"""

    SALE = "sale"
    CALLBACK = "callback"
    NOT_INTERESTED = "not-interested"
    DISQUALIFIED = "disqualified"
    PENDING = "pending"


class Sentiment(str, Enum):
    """坐席 / 客户表现评级"""

    VERY_BAD = "very-bad"
    BAD = "bad"
    AVERAGE = "average"
    GOOD = "good"
    EXCELLENT = "excellent"


class AnalysisState(str, Enum):
    """AI 分析流水线状态"""

    QUEUED = "queued"  # 等待分析
    IN_PROGRESS = "in_progress"  # 转写中
    DONE = "done"  # 已完成
    FAILED = "failed"  # 失败，见 failure_kind


class FailureKind(str, Enum):
    """分析失败原因"""

    NO_RECORDING = "no_recording"  # 无录音地址，不再自动重试
    CREDITS_EXHAUSTED = "credits_exhausted"  # AI 额度用尽 (402)
    RATE_LIMITED = "rate_limited"  # AI 限流 (429)
    FETCH_FAILED = "fetch_failed"  # 录音下载失败
    FETCH_TIMEOUT = "fetch_timeout"  # 录音下载超时
    ERROR = "error"  # 其他错误


class CallRecord(BaseTable, table=True):
    """通话记录表

    summary 字段同时承担展示和进度标记的作用（如 "Pending AI analysis"），
    流水线内部的重试判断只依赖 analysis_state / failure_kind。
    """

    __tablename__ = "call_records"
    __table_args__ = (
        Index(
            "ix_call_records_owner_external_id",
            "owner_id",
            "external_id",
            unique=True,
        ),
        # 批量转写常用查询：按状态 + 创建时间
        Index("ix_call_records_state_created", "analysis_state", "created_at"),
        Index("ix_call_records_processing_updated", "is_processing", "updated_at"),
    )

    # 标识
    owner_id: str = Field(index=True, description="所属用户ID")
    external_id: str = Field(description="外部ID: {来源}-{拨号器录音ID}")

    # 描述字段
    call_time: datetime = Field(default_factory=datetime.now, description="通话时间")
    caller_id: str = Field(default="unknown", description="主叫 / 线索ID")
    lead_id: str | None = Field(default=None, description="拨号器线索ID")
    duration: str = Field(default="0:00", description="通话时长 M:SS")
    campaign_name: str = Field(default="", description="活动名称")
    agent_name: str | None = Field(default=None, description="坐席名称")
    upload_source: str = Field(
        default=UploadSource.MANUAL.value, description="记录来源: manual/dialer"
    )

    # 录音
    recording_url: str | None = Field(default=None, description="录音地址")
    is_processing: bool = Field(
        default=False, index=True, description="录音是否仍在服务器端转换（地址不保证可播放）"
    )

    # AI 分析结果
    status: str = Field(default=CallStatus.PENDING.value, index=True, description="通话结果")
    sub_disposition: str = Field(default="", description="细分结果")
    reason: str = Field(default="", description="结果原因")
    summary: str = Field(
        default="", sa_column=Column(Text, nullable=False, default=""), description="摘要 / 进度标记"
    )
    transcript: str = Field(
        default="", sa_column=Column(Text, nullable=False, default=""), description="转写文本"
    )
    agent_response: str | None = Field(default=None, description="坐席表现")
    customer_response: str | None = Field(default=None, description="客户反应")

    # 流水线状态
    analysis_state: str = Field(
        default=AnalysisState.QUEUED.value, description="分析状态"
    )
    failure_kind: str | None = Field(default=None, description="失败原因类型")
    analyzed_at: datetime | None = Field(default=None, description="分析完成时间")


class CallRecordResponse(SQLModel):
    """通话记录响应"""

    id: int
    owner_id: str
    external_id: str
    call_time: datetime
    caller_id: str
    lead_id: str | None
    duration: str
    campaign_name: str
    agent_name: str | None
    upload_source: str
    recording_url: str | None
    is_processing: bool
    status: str
    sub_disposition: str
    reason: str
    summary: str
    transcript: str
    agent_response: str | None
    customer_response: str | None
    analysis_state: str
    failure_kind: str | None
    analyzed_at: datetime | None
    created_at: datetime
    updated_at: datetime
