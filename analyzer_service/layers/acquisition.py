"""
Layer 1 – 数据获取层
封装两个上游提供商：大模型分析接口、行情图表接口。
提供商选择由配置决定，上层只依赖抽象接口。
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from analyzer_service.config import AnalyzerServiceSettings
from analyzer_service.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

_ANALYSIS_SCHEMA = (
    '{{"symbol":"{symbol}","currentPrice":0,"recommendation":"BUY|SELL|HOLD",'
    '"confidence":0-100,"reasoning":"brief","keyMetrics":{{"peRatio":0,"marketCap":"",'
    '"52weekChange":""}},"sentiment":"POSITIVE|NEGATIVE|NEUTRAL","risks":[""],'
    '"opportunities":[""]}}'
)

_WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}


def build_prompt(symbol: str) -> str:
    """构造分析提示词：内嵌股票代码与严格的 JSON 输出结构"""
    return f"{symbol} stock. JSON only:\n" + _ANALYSIS_SCHEMA.format(symbol=symbol)


# ── 大模型分析提供商 ───────────────────────────────────────

class AnalysisProvider(ABC):
    """分析提供商接口：返回上游响应信封 {content: [...], error?: {...}}"""

    name = "base"

    @abstractmethod
    async def fetch_analysis(self, symbol: str) -> Dict[str, Any]:
        ...


class AnthropicAnalysisProvider(AnalysisProvider):
    """Anthropic Messages 接口，启用 web_search 工具"""

    name = "anthropic"

    def __init__(
        self,
        cfg: AnalyzerServiceSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cfg = cfg
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._cfg.ANTHROPIC_API_KEY,
            "anthropic-version": self._cfg.ANTHROPIC_VERSION,
        }

    def _body(self, symbol: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self._cfg.ANALYSIS_MODEL,
            "max_tokens": self._cfg.ANALYSIS_MAX_TOKENS,
            "messages": [{"role": "user", "content": build_prompt(symbol)}],
        }
        if self._cfg.ANALYSIS_WEB_SEARCH:
            body["tools"] = [_WEB_SEARCH_TOOL]
        return body

    async def fetch_analysis(self, symbol: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._cfg.UPSTREAM_TIMEOUT, transport=self._transport
            ) as client:
                r = await client.post(
                    self._cfg.ANTHROPIC_API_URL, headers=self._headers(), json=self._body(symbol)
                )
        except httpx.HTTPError as exc:
            logger.error(f"分析接口请求失败 {symbol}: {exc!r}")
            raise UpstreamUnavailable("分析失败", details=str(exc) or type(exc).__name__) from exc

        logger.info(f"分析接口响应 {symbol}: HTTP {r.status_code}")
        try:
            data = r.json()
        except ValueError as exc:
            raise UpstreamUnavailable("分析失败", details=f"上游返回非 JSON 响应（HTTP {r.status_code}）") from exc
        if not isinstance(data, dict):
            raise UpstreamUnavailable("分析失败", details="上游响应格式异常")
        return data


class MockAnalysisProvider(AnalysisProvider):
    """离线开发用：返回固定的合法分析结果"""

    name = "mock"

    async def fetch_analysis(self, symbol: str) -> Dict[str, Any]:
        payload = {
            "symbol": symbol,
            "currentPrice": 100.0,
            "recommendation": "HOLD",
            "confidence": 50,
            "reasoning": "Mock analysis for offline development.",
            "keyMetrics": {"peRatio": 20, "marketCap": "N/A", "52weekChange": "0%"},
            "sentiment": "NEUTRAL",
            "risks": ["Mock data"],
            "opportunities": ["Mock data"],
        }
        text = f"```json\n{json.dumps(payload, ensure_ascii=False)}\n```"
        return {
            "id": f"mock-{symbol}",
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": text}],
        }


# ── 行情图表提供商 ─────────────────────────────────────────

class ChartProvider(ABC):
    """图表提供商接口：原样返回上游 JSON"""

    name = "base"

    @abstractmethod
    async def fetch_chart(self, symbol: str, range_: str, interval: str) -> Any:
        ...


class YahooChartProvider(ChartProvider):
    """Yahoo Finance v8 chart 接口"""

    name = "yahoo"

    def __init__(
        self,
        cfg: AnalyzerServiceSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._cfg = cfg
        self._transport = transport

    async def fetch_chart(self, symbol: str, range_: str, interval: str) -> Any:
        url = f"{self._cfg.CHART_API_URL.rstrip('/')}/{symbol}"
        params = {"range": range_, "interval": interval}
        try:
            async with httpx.AsyncClient(
                timeout=self._cfg.UPSTREAM_TIMEOUT,
                transport=self._transport,
                headers={"User-Agent": self._cfg.CHART_USER_AGENT},
            ) as client:
                r = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.error(f"图表接口请求失败 {symbol}: {exc!r}")
            raise UpstreamUnavailable("获取图表数据失败", details=str(exc) or type(exc).__name__) from exc

        if r.status_code >= 400:
            logger.warning(f"图表接口返回 HTTP {r.status_code}: {symbol} range={range_}")
        try:
            return r.json()
        except ValueError as exc:
            raise UpstreamUnavailable(
                "获取图表数据失败", details=f"上游返回非 JSON 响应（HTTP {r.status_code}）"
            ) from exc


# ── 提供商工厂 ────────────────────────────────────────────

def build_analysis_provider(cfg: AnalyzerServiceSettings) -> AnalysisProvider:
    name = cfg.ANALYSIS_PROVIDER.lower()
    if name == "mock":
        logger.warning("⚠️ 使用 Mock 分析提供商，返回固定数据")
        return MockAnalysisProvider()
    if name != "anthropic":
        raise ValueError(f"未知的分析提供商: {cfg.ANALYSIS_PROVIDER}")
    if not cfg.ANTHROPIC_API_KEY:
        logger.warning("⚠️ ANTHROPIC_API_KEY 未配置，分析请求将被上游拒绝")
    return AnthropicAnalysisProvider(cfg)


def build_chart_provider(cfg: AnalyzerServiceSettings) -> ChartProvider:
    if cfg.CHART_PROVIDER.lower() != "yahoo":
        raise ValueError(f"未知的图表提供商: {cfg.CHART_PROVIDER}")
    return YahooChartProvider(cfg)
