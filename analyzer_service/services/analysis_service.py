"""
AI 分析服务
整合缓存层、数据获取层与解析函数：命中缓存直接返回，未命中时调用上游并写入缓存
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from analyzer_service.config import AnalyzerServiceSettings, settings
from analyzer_service.exceptions import (
    AnalysisParseError,
    UpstreamMalformedResponse,
    UpstreamRateLimited,
)
from analyzer_service.layers.acquisition import AnalysisProvider, build_analysis_provider
from analyzer_service.layers.cache import CacheStore, build_cache_store
from analyzer_service.layers.parsing import normalize_symbol, parse_envelope
from analyzer_service.models.analysis import AnalysisReport, AnalysisResult

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """
    分析编排器

    Args:
        cache: 缓存存储
        provider: 分析提供商
        ttl: 缓存有效期（秒）
        single_flight: 同一代码并发未命中时是否共享同一次上游调用
    """

    def __init__(
        self,
        cache: CacheStore,
        provider: AnalysisProvider,
        ttl: float = 1800,
        single_flight: bool = True,
    ):
        self._cache = cache
        self._provider = provider
        self._ttl = ttl
        self._single_flight = single_flight
        self._inflight: Dict[str, "asyncio.Task"] = {}

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def ttl(self) -> float:
        return self._ttl

    async def analyze(self, symbol: Optional[str]) -> AnalysisReport:
        key = normalize_symbol(symbol)

        envelope = await self._cache.get_if_fresh(key, self._ttl)
        if envelope is not None:
            try:
                result = parse_envelope(envelope)
            except AnalysisParseError as exc:
                logger.warning(f"缓存条目无法解析，重新请求上游 {key}: {exc}")
            else:
                logger.info(f"✅ 返回缓存分析结果: {key}")
                return AnalysisReport(symbol=key, envelope=envelope, result=result, cached=True)

        if not self._single_flight:
            envelope, result = await self._refresh(key)
            return AnalysisReport(symbol=key, envelope=envelope, result=result)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.info(f"合并并发分析请求: {key}")
        envelope, result = await asyncio.shield(task)
        return AnalysisReport(symbol=key, envelope=envelope, result=result)

    def _forget(self, key: str, task: "asyncio.Task") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _refresh(self, key: str) -> Tuple[Dict[str, Any], AnalysisResult]:
        """调用上游、校验并写入缓存；任何失败都不写缓存"""
        logger.info(f"分析中: {key}（提供商 {self._provider.name}）")
        envelope = await self._provider.fetch_analysis(key)

        error = envelope.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error(f"分析接口返回错误 {key}: {error}")
            raise UpstreamRateLimited(message or "上游限流")

        try:
            result = parse_envelope(envelope)
        except AnalysisParseError as exc:
            logger.warning(f"分析结果解析失败 {key}: {exc}")
            raise UpstreamMalformedResponse("AI 分析暂不可用", details=str(exc)) from exc

        await self._cache.put(key, envelope)
        logger.info(f"✅ 分析完成: {key}")
        return envelope, result


def build_analysis_service(cfg: AnalyzerServiceSettings) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        cache=build_cache_store(cfg),
        provider=build_analysis_provider(cfg),
        ttl=cfg.ANALYSIS_CACHE_TTL,
        single_flight=cfg.ANALYSIS_SINGLE_FLIGHT,
    )


# ── 模块级别单例 ──────────────────────────────────────────
_analysis_service: Optional[AnalysisOrchestrator] = None


def get_analysis_service() -> AnalysisOrchestrator:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = build_analysis_service(settings)
    return _analysis_service


def reset_analysis_service() -> None:
    """丢弃单例（进程关闭时调用）"""
    global _analysis_service
    _analysis_service = None
