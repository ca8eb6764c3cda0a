"""
Layer 3 – 数据处理层
将上游图表响应（chart.result[0]）整形为 K 线列表与价格摘要。
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from analyzer_service.exceptions import UpstreamMalformedResponse

logger = logging.getLogger(__name__)

_OHLCV = ["open", "high", "low", "close", "volume"]


def _as_float(value: Any) -> Optional[float]:
    return None if pd.isna(value) else float(value)


class ProcessingLayer:
    """数据处理层：图表响应 → 标准 OHLCV DataFrame → 记录 / 摘要"""

    def chart_result(self, chart: Any) -> Dict[str, Any]:
        """取出 chart.result[0]，结构不符时视为上游响应异常"""
        try:
            result = chart["chart"]["result"][0]
        except (KeyError, IndexError, TypeError):
            body = chart.get("chart") if isinstance(chart, dict) else None
            error = body.get("error") if isinstance(body, dict) else None
            details = error.get("description") if isinstance(error, dict) else None
            raise UpstreamMalformedResponse("图表数据不可用", details=details or "缺少 chart.result")
        if not isinstance(result, dict):
            raise UpstreamMalformedResponse("图表数据不可用", details="chart.result[0] 不是对象")
        return result

    def extract_meta(self, result: Dict[str, Any]) -> Dict[str, Any]:
        meta = result.get("meta") or {}
        return {
            "symbol": meta.get("symbol"),
            "currency": meta.get("currency"),
            "exchange": meta.get("exchangeName"),
            "currentPrice": meta.get("regularMarketPrice"),
            "previousClose": meta.get("previousClose", meta.get("chartPreviousClose")),
        }

    def chart_to_frame(self, result: Dict[str, Any]) -> pd.DataFrame:
        """
        时间戳（epoch 秒）与 quote 序列对齐为 DataFrame

        标准列：date, open, high, low, close, volume；open 为空的行被丢弃
        """
        timestamps = result.get("timestamp") or []
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        quote = quotes[0] or {}
        if not timestamps:
            return pd.DataFrame(columns=["date"] + _OHLCV)

        df = pd.DataFrame({"timestamp": timestamps})
        for col in _OHLCV:
            series = list(quote.get(col) or [])
            series += [None] * (len(timestamps) - len(series))
            df[col] = pd.to_numeric(pd.Series(series[: len(timestamps)]), errors="coerce")

        df = df.dropna(subset=["open"]).copy()
        df["date"] = pd.to_datetime(df["timestamp"], unit="s", utc=True).dt.strftime("%Y-%m-%dT%H:%M:%SZ")
        return df[["date"] + _OHLCV].reset_index(drop=True)

    def summarize(self, df: pd.DataFrame) -> Dict[str, Optional[float]]:
        """区间摘要：首尾收盘价、涨跌额、涨跌幅、最高、最低"""
        closes = df["close"].dropna() if not df.empty else pd.Series(dtype=float)
        if closes.empty:
            return {
                "first_close": None, "last_close": None, "change": None,
                "change_pct": None, "high": None, "low": None,
            }
        first, last = float(closes.iloc[0]), float(closes.iloc[-1])
        change = last - first
        return {
            "first_close": first,
            "last_close": last,
            "change": round(change, 4),
            "change_pct": round(change / first * 100, 2) if first else None,
            "high": _as_float(df["high"].max()),
            "low": _as_float(df["low"].min()),
        }

    def to_records(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """DataFrame 转换为字典列表（NaN → None）"""
        if df.empty:
            return []
        return df.astype(object).where(df.notna(), None).to_dict(orient="records")


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
