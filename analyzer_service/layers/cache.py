"""
Layer 2 – 缓存层
以规范化股票代码为键，缓存上游分析响应；过期判断在读取时进行（TTL 逻辑集中在 get_if_fresh）
后端：进程内存（默认） / Redis（可选）
"""

import copy
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from analyzer_service.config import AnalyzerServiceSettings
from analyzer_service.db import get_redis

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _make_key(namespace: str, key: str) -> str:
    """生成 Redis 缓存键"""
    return f"{namespace}:{key}"


@dataclass(frozen=True)
class CacheEntry:
    """缓存条目，写入后不再修改，刷新时整体替换"""

    key: str
    value: Any
    stored_at: float

    def is_fresh(self, ttl: float, now: float) -> bool:
        return now - self.stored_at < ttl


class CacheStore(ABC):
    """缓存存储接口，单次 get / put 相互原子"""

    backend = "base"

    def __init__(self, clock: Clock = time.time):
        self._clock = clock

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """返回条目（不论是否过期）"""

    @abstractmethod
    async def put(self, key: str, value: Any) -> CacheEntry:
        """写入 / 替换条目，以当前时间为存储时间"""

    @abstractmethod
    async def get_if_fresh(self, key: str, ttl: float) -> Optional[Any]:
        """条目存在且未过期时返回其值，否则返回 None"""

    @abstractmethod
    async def stats(self, ttl: float) -> Dict[str, Any]:
        """返回缓存统计信息"""


class MemoryCacheStore(CacheStore):
    """
    进程内存缓存

    max_entries 为 0 时不限制条目数量；否则按最近使用顺序淘汰。
    写入与读取均做深拷贝，调用方修改返回值不会影响已缓存的条目。
    """

    backend = "memory"

    def __init__(self, max_entries: int = 0, clock: Clock = time.time):
        super().__init__(clock)
        self._max_entries = max(max_entries, 0)
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return copy.deepcopy(self._entries.get(key))

    async def get_if_fresh(self, key: str, ttl: float) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_fresh(ttl, self._clock()):
                self._entries.move_to_end(key)
                return copy.deepcopy(entry.value)
            del self._entries[key]
        logger.debug(f"缓存过期已移除: {key}")
        return None

    async def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=self._clock())
        stored = replace(entry, value=copy.deepcopy(value))
        with self._lock:
            self._entries[key] = stored
            self._entries.move_to_end(key)
            while self._max_entries and len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"缓存条目淘汰（LRU）: {evicted}")
        logger.debug(f"缓存写入（内存）: {key}")
        return entry

    async def stats(self, ttl: float) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            total = len(self._entries)
            fresh = sum(1 for e in self._entries.values() if e.is_fresh(ttl, now))
        return {
            "backend": self.backend,
            "entries": total,
            "fresh": fresh,
            "max_entries": self._max_entries or None,
            "ttl": ttl,
        }


class RedisCacheStore(CacheStore):
    """
    Redis 缓存

    每个条目保存为 JSON 文档 {stored_at, value}，以 SETEX 写入使 Redis 同步清理过期键。
    Redis 读写失败时按未命中处理，不影响请求。
    """

    backend = "redis"

    def __init__(self, redis, ttl: float, namespace: str = "analysis", clock: Clock = time.time):
        super().__init__(clock)
        self._redis = redis
        self._ttl = ttl
        self._namespace = namespace

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self._redis.get(_make_key(self._namespace, key))
        except Exception as exc:
            logger.warning(f"Redis 读取失败: {exc}")
            return None
        if not raw:
            return None
        try:
            doc = json.loads(raw)
            return CacheEntry(key=key, value=doc["value"], stored_at=float(doc["stored_at"]))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning(f"Redis 缓存条目损坏，忽略: {key} ({exc})")
            return None

    async def get_if_fresh(self, key: str, ttl: float) -> Optional[Any]:
        entry = await self.get(key)
        if entry is None:
            return None
        # 只读：过期键由 SETEX 到期清理
        if entry.is_fresh(ttl, self._clock()):
            return entry.value
        return None

    async def put(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=self._clock())
        serialized = json.dumps(
            {"stored_at": entry.stored_at, "value": value}, ensure_ascii=False, default=str
        )
        try:
            await self._redis.setex(
                _make_key(self._namespace, key), max(int(self._ttl), 1), serialized
            )
            logger.debug(f"缓存写入（Redis）: {key}")
        except Exception as exc:
            logger.warning(f"Redis 写入失败: {exc}")
        return entry

    async def stats(self, ttl: float) -> Dict[str, Any]:
        result: Dict[str, Any] = {"backend": self.backend, "ttl": ttl}
        try:
            count = 0
            async for _ in self._redis.scan_iter(match=f"{self._namespace}:*"):
                count += 1
            result["entries"] = count
            result["status"] = "healthy"
        except Exception as exc:
            result["status"] = "error"
            result["error"] = str(exc)
        return result


def build_cache_store(cfg: AnalyzerServiceSettings) -> CacheStore:
    """根据 CACHE_BACKEND 创建缓存后端，Redis 不可用时降级为内存"""
    if cfg.CACHE_BACKEND.lower() == "redis":
        redis = get_redis()
        if redis is not None:
            logger.info("分析缓存后端: Redis")
            return RedisCacheStore(redis, ttl=cfg.ANALYSIS_CACHE_TTL)
        logger.warning("⚠️ CACHE_BACKEND=redis 但 Redis 未连接，降级为内存缓存")
    logger.info(f"分析缓存后端: 内存（上限 {cfg.ANALYSIS_CACHE_MAX_ENTRIES or '不限'}）")
    return MemoryCacheStore(max_entries=cfg.ANALYSIS_CACHE_MAX_ENTRIES)
