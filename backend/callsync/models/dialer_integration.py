"""拨号器集成配置数据模型

每个用户一份 VICIdial 连接配置，由设置界面维护，流水线只读
（同步成功后回写 last_sync_at）。
"""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, UniqueConstraint
from sqlalchemy.types import JSON
from sqlmodel import Field

from callsync.models.base import BaseTable


class DialerIntegration(BaseTable, table=True):
    """拨号器集成配置表"""

    __tablename__ = "dialer_integrations"
    __table_args__ = (
        UniqueConstraint("owner_id", "dialer_type", name="uq_dialer_integrations_owner_type"),
    )

    owner_id: str = Field(index=True, description="所属用户ID")
    dialer_type: str = Field(default="vicidial", description="拨号器类型")
    server_url: str = Field(description="服务器地址")
    api_user: str = Field(description="API 用户名")
    api_password: str = Field(description="API 密码")
    agent_ids: list[Any] = Field(
        default_factory=list,
        sa_column=Column(JSON),
        description="需要同步录音的坐席ID列表",
    )
    is_active: bool = Field(default=True, description="是否启用")
    last_sync_at: datetime | None = Field(default=None, description="上次成功同步时间")

    @property
    def base_url(self) -> str:
        """去掉末尾斜杠和 /vicidial 路径后的服务器根地址"""
        return self.server_url.rstrip("/").split("/vicidial")[0]
