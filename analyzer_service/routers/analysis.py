"""
AI 分析路由
POST /api/analyze            - 分析股票，返回上游响应信封（命中缓存时不调用上游）
GET  /api/analysis/{symbol}  - 返回解析后的结构化分析结果
"""

from fastapi import APIRouter, Depends, Response

from analyzer_service.models.analysis import AnalyzeRequest
from analyzer_service.models.response import ApiResponse
from analyzer_service.services.analysis_service import AnalysisOrchestrator, get_analysis_service

router = APIRouter(prefix="/api", tags=["AI 分析"])


def _mark_cache(response: Response, cached: bool) -> None:
    response.headers["X-Cache"] = "HIT" if cached else "MISS"


@router.post("/analyze")
async def analyze(
    body: AnalyzeRequest,
    response: Response,
    svc: AnalysisOrchestrator = Depends(get_analysis_service),
):
    """分析股票"""
    report = await svc.analyze(body.symbol)
    _mark_cache(response, report.cached)
    return report.envelope


@router.get("/analysis/{symbol}", response_model=ApiResponse)
async def get_analysis(
    symbol: str,
    response: Response,
    svc: AnalysisOrchestrator = Depends(get_analysis_service),
):
    """获取结构化分析结果"""
    report = await svc.analyze(symbol)
    _mark_cache(response, report.cached)
    return ApiResponse.ok(
        data={
            "symbol": report.symbol,
            "cached": report.cached,
            "analysis": report.result.model_dump(by_alias=True),
        }
    )
