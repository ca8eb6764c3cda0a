"""
缓存管理路由
GET  /api/cache/stats     - 分析缓存统计
"""

from fastapi import APIRouter, Depends

from analyzer_service.models.response import ApiResponse
from analyzer_service.services.analysis_service import AnalysisOrchestrator, get_analysis_service

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


@router.get("/stats", response_model=ApiResponse)
async def cache_stats(svc: AnalysisOrchestrator = Depends(get_analysis_service)):
    """获取分析缓存统计信息（后端、条目数、有效条目数）"""
    stats = await svc.cache.stats(svc.ttl)
    return ApiResponse.ok(data=stats)
