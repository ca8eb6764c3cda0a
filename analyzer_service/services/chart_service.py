"""
图表数据服务
按时间范围映射采样间隔，转发至图表提供商并原样返回；不做缓存
"""

import logging
from typing import Any, Dict, Optional

from analyzer_service.config import AnalyzerServiceSettings, settings
from analyzer_service.layers.acquisition import ChartProvider, build_chart_provider
from analyzer_service.layers.parsing import normalize_symbol
from analyzer_service.layers.processing import ProcessingLayer, get_processing_layer

logger = logging.getLogger(__name__)

DAILY, WEEKLY, MONTHLY = "1d", "1wk", "1mo"

# 时间范围 → 采样间隔；未识别的范围使用日线
RANGE_INTERVALS: Dict[str, str] = {
    "1mo": DAILY,
    "3mo": DAILY,
    "6mo": DAILY,
    "ytd": DAILY,
    "1y": WEEKLY,
    "2y": WEEKLY,
    "5y": MONTHLY,
}


def interval_for_range(range_: Optional[str]) -> str:
    return RANGE_INTERVALS.get((range_ or "").strip().lower(), DAILY)


class ChartFetcher:
    """图表数据转发"""

    def __init__(
        self,
        provider: ChartProvider,
        default_range: str = "1mo",
        processor: Optional[ProcessingLayer] = None,
    ):
        self._provider = provider
        self._default_range = default_range
        self._proc = processor or get_processing_layer()

    async def fetch_chart(self, symbol: Optional[str], range_: Optional[str] = None) -> Any:
        """
        获取图表数据（上游响应原样返回）

        Args:
            symbol: 股票代码
            range_: 时间范围 1mo / 3mo / 6mo / ytd / 1y / 2y / 5y
        """
        key = normalize_symbol(symbol)
        range_ = (range_ or "").strip() or self._default_range
        interval = interval_for_range(range_)
        logger.info(f"获取图表数据: {key} range={range_} interval={interval}")
        return await self._provider.fetch_chart(key, range_, interval)

    async def fetch_candles(self, symbol: Optional[str], range_: Optional[str] = None) -> Dict[str, Any]:
        """获取图表数据并整形为 K 线列表 + 行情信息 + 区间摘要"""
        chart = await self.fetch_chart(symbol, range_)
        result = self._proc.chart_result(chart)
        df = self._proc.chart_to_frame(result)
        range_ = (range_ or "").strip() or self._default_range
        return {
            "symbol": normalize_symbol(symbol),
            "range": range_,
            "interval": interval_for_range(range_),
            "info": self._proc.extract_meta(result),
            "summary": self._proc.summarize(df),
            "count": len(df),
            "candles": self._proc.to_records(df),
        }


def build_chart_service(cfg: AnalyzerServiceSettings) -> ChartFetcher:
    return ChartFetcher(build_chart_provider(cfg), default_range=cfg.CHART_DEFAULT_RANGE)


# ── 模块级别单例 ──────────────────────────────────────────
_chart_service: Optional[ChartFetcher] = None


def get_chart_service() -> ChartFetcher:
    global _chart_service
    if _chart_service is None:
        _chart_service = build_chart_service(settings)
    return _chart_service
