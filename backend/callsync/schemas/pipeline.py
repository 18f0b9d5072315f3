"""流水线接口请求模型"""

from datetime import date

from pydantic import BaseModel, Field


class DialerSyncRequest(BaseModel):
    """拨号器同步请求"""

    owner_id: str = Field(..., description="用户ID")
    date_from: date | None = Field(None, description="开始日期（含），默认 7 天前")
    date_to: date | None = Field(None, description="结束日期（含），默认今天")
    agent_ids: list[str] | None = Field(None, description="坐席列表，默认使用集成配置")


class DialerTestRequest(BaseModel):
    """拨号器连接测试请求"""

    owner_id: str = Field(..., description="用户ID")


class RecordingRetryRequest(BaseModel):
    """录音探测请求"""

    min_age_seconds: int | None = Field(None, description="距上次探测的最小间隔（秒），15~600")
    limit: int | None = Field(None, description="最多探测记录数，1~200")
    owner_id: str | None = Field(None, description="只处理指定用户")


class TranscriptionRunRequest(BaseModel):
    """转写请求

    传 record_id 时只处理该记录，否则按批处理待分析记录。
    """

    record_id: int | None = Field(None, description="指定记录ID")
    limit: int | None = Field(None, ge=1, description="最多处理记录数")
    concurrency: int | None = Field(None, ge=1, le=20, description="每批并发数")
    owner_id: str | None = Field(None, description="只处理指定用户")
