"""
股票分析代理服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn analyzer_service.main:app --host 0.0.0.0 --port 3001
    python -m analyzer_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from analyzer_service import __version__
from analyzer_service.config import settings
from analyzer_service.db import init_redis, close_connections
from analyzer_service.exceptions import ServiceError
from analyzer_service.routers import health, chart, analysis, cache
from analyzer_service.services.analysis_service import reset_analysis_service

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Stock Analyzer Service v{__version__} 启动中")
    logger.info(f"   分析提供商 : {settings.ANALYSIS_PROVIDER} ({settings.ANALYSIS_MODEL})")
    logger.info(f"   图表提供商 : {settings.CHART_PROVIDER}")
    logger.info(f"   缓存       : {settings.CACHE_BACKEND}, TTL {settings.ANALYSIS_CACHE_TTL}s")
    logger.info("=" * 60)

    # CACHE_BACKEND=redis 时连接 Redis；失败不阻断启动，分析缓存降级为内存
    await init_redis()

    yield

    logger.info("🔄 服务正在关闭...")
    reset_analysis_service()
    await close_connections()
    logger.info("✅ 服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Stock Analyzer Service",
    description=(
        "单页股票图表 UI 的后端代理：\n"
        "- 📊 行情图表转发（按时间范围选择采样间隔）\n"
        "- 🤖 AI 股票分析（大模型 + 网页搜索，30 分钟缓存）\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← 图表 / 分析上游提供商\n"
        "Cache Layer        ← 内存 / Redis 分析缓存\n"
        "Processing Layer   ← 模型输出解析、K 线整形\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}


# ── 预检请求：任意路径 OPTIONS 返回 200 空响应 ─────────────
@app.middleware("http")
async def answer_preflight(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=_PREFLIGHT_HEADERS)
    return await call_next(request)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 异常处理 ──────────────────────────────────────────────
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.warning(f"{request.method} {request.url.path} → {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "请求参数无效", "details": str(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "内部服务错误", "details": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(chart.router)
app.include_router(analysis.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Stock Analyzer Service",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "analyzer_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
