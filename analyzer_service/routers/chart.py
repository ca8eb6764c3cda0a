"""
图表数据路由
GET /api/chart/{symbol}           - 上游图表 JSON（原样返回）
GET /api/chart?symbol=            - 同上（查询参数形式）
GET /api/chart/{symbol}/candles   - 整形后的 K 线与摘要
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from analyzer_service.models.response import ApiResponse
from analyzer_service.services.chart_service import ChartFetcher, RANGE_INTERVALS, get_chart_service

router = APIRouter(prefix="/api/chart", tags=["图表数据"])

_RANGE_DESC = f"时间范围: {' / '.join(RANGE_INTERVALS)}，未识别时按日线采样"


@router.get("")
async def get_chart_by_query(
    symbol: Optional[str] = Query(default=None, description="股票代码"),
    range: Optional[str] = Query(default=None, description=_RANGE_DESC),
    svc: ChartFetcher = Depends(get_chart_service),
):
    """获取图表数据（查询参数形式）"""
    return await svc.fetch_chart(symbol, range)


@router.get("/{symbol}/candles", response_model=ApiResponse)
async def get_candles(
    symbol: str,
    range: Optional[str] = Query(default=None, description=_RANGE_DESC),
    svc: ChartFetcher = Depends(get_chart_service),
):
    """获取 K 线列表、行情信息与区间涨跌摘要"""
    data = await svc.fetch_candles(symbol, range)
    return ApiResponse.ok(data=data)


@router.get("/{symbol}")
async def get_chart(
    symbol: str,
    range: Optional[str] = Query(default=None, description=_RANGE_DESC),
    svc: ChartFetcher = Depends(get_chart_service),
):
    """获取图表数据，上游响应原样返回"""
    return await svc.fetch_chart(symbol, range)
