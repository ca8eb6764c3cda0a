"""
股票分析服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


class AnalyzerServiceSettings(BaseSettings):
    """股票分析服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3001)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── 大模型分析提供商 ───────────────────────────────────
    ANALYSIS_PROVIDER: str = Field(default="anthropic")   # anthropic / mock
    ANTHROPIC_API_KEY: str = Field(default="")
    ANTHROPIC_API_URL: str = Field(default="https://api.anthropic.com/v1/messages")
    ANTHROPIC_VERSION: str = Field(default="2023-06-01")
    ANALYSIS_MODEL: str = Field(default="claude-haiku-4-5-20251001")
    ANALYSIS_MAX_TOKENS: int = Field(default=400)
    ANALYSIS_WEB_SEARCH: bool = Field(default=True)

    # ── 图表数据提供商 ─────────────────────────────────────
    CHART_PROVIDER: str = Field(default="yahoo")
    CHART_API_URL: str = Field(default="https://query1.finance.yahoo.com/v8/finance/chart")
    CHART_DEFAULT_RANGE: str = Field(default="1mo")
    CHART_USER_AGENT: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # 上游请求超时（秒）
    UPSTREAM_TIMEOUT: float = Field(default=30.0)

    # ── 缓存配置 ──────────────────────────────────────────
    CACHE_BACKEND: str = Field(default="memory")          # memory / redis
    ANALYSIS_CACHE_TTL: int = Field(default=1800)         # 分析结果 TTL（秒）
    ANALYSIS_CACHE_MAX_ENTRIES: int = Field(default=0)    # 0 表示不限制
    ANALYSIS_SINGLE_FLIGHT: bool = Field(default=True)    # 合并同一代码的并发请求

    # ── Redis 配置（支持服务发现） ─────────────────────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_ENABLED: bool = Field(default=False)          # CACHE_BACKEND=redis 时自动启用
    REDIS_MAX_CONNECTIONS: int = Field(default=20)

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> AnalyzerServiceSettings:
    """获取全局配置（单例）"""
    return AnalyzerServiceSettings()


settings = get_settings()
