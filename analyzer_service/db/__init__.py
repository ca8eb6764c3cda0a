"""
连接管理模块
管理可选的 Redis（异步）连接，供 Redis 缓存后端使用
"""

import logging
from typing import Optional

from redis.asyncio import Redis, ConnectionPool

from analyzer_service.config import settings

logger = logging.getLogger(__name__)

# ── 全局连接实例 ─────────────────────────────────────────
_redis_client: Optional[Redis] = None
_redis_pool: Optional[ConnectionPool] = None


def redis_wanted() -> bool:
    """CACHE_BACKEND=redis 即需要 Redis；REDIS_ENABLED 可在内存缓存下单独开启连接"""
    return settings.CACHE_BACKEND.lower() == "redis" or settings.REDIS_ENABLED


async def init_redis() -> bool:
    """初始化 Redis 异步连接，返回是否成功"""
    global _redis_client, _redis_pool
    if not redis_wanted():
        logger.info(f"缓存后端为 {settings.CACHE_BACKEND}，未启用 Redis，跳过初始化")
        return False
    try:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=10,
        )
        _redis_client = Redis(connection_pool=_redis_pool)
        await _redis_client.ping()
        logger.info(f"✅ Redis 连接成功: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
        return True
    except Exception as exc:
        logger.warning(f"⚠️ Redis 连接失败（分析缓存降级为内存模式）: {exc}")
        _redis_client = None
        _redis_pool = None
        return False


async def close_connections():
    """关闭 Redis 连接"""
    global _redis_client, _redis_pool
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis 连接已关闭")


def get_redis() -> Optional[Redis]:
    """获取 Redis 客户端（可能为 None）"""
    return _redis_client


async def check_health() -> dict:
    """检查 Redis 连接健康状态"""
    result = {"redis": {"status": "disabled"}}
    if _redis_client:
        try:
            await _redis_client.ping()
            result["redis"] = {"status": "healthy", "host": settings.REDIS_HOST}
        except Exception as exc:
            result["redis"] = {"status": "unhealthy", "error": str(exc)}
    elif redis_wanted():
        result["redis"] = {"status": "disconnected"}
    return result
