"""
后台统计路由
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional

from ....core.error_handler import create_success_response
from ....core.security import require_admin
from ....services.stats_service import stats_service

router = APIRouter()


@router.get("/cs-performance")
def cs_performance(
    range_name: str = Query("today", alias="range", description="today/week/month/year/all"),
    start_date: Optional[date] = Query(None, description="开始日期"),
    end_date: Optional[date] = Query(None, description="结束日期"),
    current_user: Dict[str, Any] = Depends(require_admin),
):
    """客服业绩排行"""
    return create_success_response(stats_service.cs_performance(range_name, start_date, end_date))


@router.get("/finance")
def platform_finance(
    range_name: str = Query("today", alias="range", description="today/week/month/year/all"),
    start_date: Optional[date] = Query(None, description="开始日期"),
    end_date: Optional[date] = Query(None, description="结束日期"),
    current_user: Dict[str, Any] = Depends(require_admin),
):
    """平台收支汇总与按日图表"""
    return create_success_response(stats_service.platform_finance(range_name, start_date, end_date))


@router.get("/overview")
def dashboard_overview(current_user: Dict[str, Any] = Depends(require_admin)):
    return create_success_response(stats_service.dashboard_overview())
