"""健康检查路由"""

import time

from fastapi import APIRouter

from analyzer_service import __version__
from analyzer_service.db import check_health

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查"""
    db_health = await check_health()
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Stock Analyzer Service",
            "databases": db_health,
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe"""
    return {"ready": True}


@router.get("/test", include_in_schema=False)
async def test():
    return {"message": "Server is running!"}
