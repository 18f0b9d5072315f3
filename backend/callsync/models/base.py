"""表模型公共字段"""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class BaseTable(SQLModel):
    """带自增主键和创建 / 更新时间的基础表"""

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def touch(self, now: datetime | None = None) -> None:
        """刷新更新时间"""
        self.updated_at = now or datetime.now()
