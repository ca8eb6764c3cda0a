"""AI 分析结果模型"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MetricValue = Optional[Union[float, str]]


class KeyMetrics(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    peRatio: MetricValue = None
    marketCap: MetricValue = None
    week52_change: MetricValue = Field(default=None, alias="52weekChange")


class AnalysisResult(BaseModel):
    """大模型返回的结构化分析结果（只读）"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    currentPrice: float
    recommendation: Literal["BUY", "SELL", "HOLD"]
    confidence: float = Field(ge=0, le=100)
    reasoning: str
    keyMetrics: KeyMetrics
    sentiment: Literal["POSITIVE", "NEGATIVE", "NEUTRAL"]
    risks: List[str]
    opportunities: List[str]

    @field_validator("recommendation", "sentiment", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class AnalysisReport(BaseModel):
    """
    编排器返回值

    envelope 为上游响应原文（即缓存内容），result 为其解析结果
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    envelope: Dict[str, Any]
    result: AnalysisResult
    cached: bool = False


class AnalyzeRequest(BaseModel):
    symbol: Optional[str] = None
