"""
地陪路由模块
公开列表/详情与地陪资料维护
"""

from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional

from ...schemas.guide import GuideProfileRequest
from ...core.error_handler import create_paginated_response, create_success_response
from ...core.security import get_current_user
from ...services.guide_service import guide_service

router = APIRouter()


@router.get("")
def list_guides(
    city: Optional[str] = Query(None, description="城市"),
    keyword: Optional[str] = Query(None, description="关键字"),
    lat: Optional[float] = Query(None, ge=-90, le=90, description="当前纬度"),
    lng: Optional[float] = Query(None, ge=-180, le=180, description="当前经度"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
):
    """公开地陪列表，传入经纬度时按距离排序"""
    items, total = guide_service.list_public_guides(city, keyword, lat, lng, page, page_size)
    return create_paginated_response(items, total, page, page_size)


@router.get("/profile")
def get_my_guide_profile(current_user: Dict[str, Any] = Depends(get_current_user)):
    """获取我的地陪资料"""
    return create_success_response(guide_service.get_my_profile(current_user["id"]))


@router.post("/profile")
@router.put("/profile")
def save_my_guide_profile(req: GuideProfileRequest,
                          current_user: Dict[str, Any] = Depends(get_current_user)):
    """提交或更新我的地陪资料"""
    profile = guide_service.upsert_my_profile(current_user["id"], req.model_dump(exclude_none=True))
    return create_success_response(profile, "资料已保存")


@router.get("/{guide_id}")
def get_guide(guide_id: int):
    """公开地陪详情"""
    return create_success_response(guide_service.get_public_guide(guide_id))
