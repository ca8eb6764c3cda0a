"""统一 API 响应模型（错误响应由 main 中的异常处理器生成）"""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """成功响应封装"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(data=data, message=message)
