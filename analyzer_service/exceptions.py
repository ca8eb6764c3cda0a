"""
服务级异常定义
每个异常携带 HTTP 状态码，由 main 中的统一异常处理器转换为 JSON 错误体
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """服务异常基类"""

    status_code = 500
    code = "SERVICE_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidInput(ServiceError):
    """请求参数缺失或为空"""

    status_code = 400
    code = "INVALID_INPUT"


class UpstreamRateLimited(ServiceError):
    """上游提供商返回错误（限流），原样透传其消息"""

    status_code = 429
    code = "UPSTREAM_RATE_LIMITED"

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message}


class UpstreamMalformedResponse(ServiceError):
    """上游响应中找不到可解析的 JSON，可由调用方重试"""

    status_code = 500
    code = "UPSTREAM_MALFORMED_RESPONSE"

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["retryable"] = True
        return body


class UpstreamUnavailable(ServiceError):
    """网络 / 超时等传输层失败"""

    status_code = 500
    code = "UPSTREAM_UNAVAILABLE"


class AnalysisParseError(ValueError):
    """模型输出文本解析失败（处理层内部使用）"""
