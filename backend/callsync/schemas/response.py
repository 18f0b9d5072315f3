"""统一响应模型"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ResponseModel(BaseModel, Generic[T]):
    """统一响应模型

    Attributes:
        code: 响应码，200 表示成功
        message: 响应消息
        data: 响应数据
    """

    code: int = 200
    message: str = "success"
    data: Optional[T] = None

    @classmethod
    def success(cls, data: T = None, message: str = "success") -> "ResponseModel[T]":
        """成功响应"""
        return cls(code=200, message=message, data=data)

    @classmethod
    def error(cls, code: int = 400, message: str = "error", data: T = None) -> "ResponseModel[T]":
        """错误响应"""
        return cls(code=code, message=message, data=data)

    @classmethod
    def from_result(cls, result: dict, message: str = "success") -> "ResponseModel[T]":
        """根据服务层结果构造响应

        服务层以 {success: False, error} 表示业务失败。
        """
        if result.get("success", True):
            return cls.success(data=result, message=result.get("message") or message)
        return cls.error(code=400, message=result.get("error") or "error", data=result)
