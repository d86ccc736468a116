"""
后台地陪管理路由
审核身份、定价与上下架
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Any, Dict, Optional

from ....schemas.guide import AdminGuideCreateRequest, AdminGuideUpdateRequest
from ....core.error_handler import create_paginated_response, create_success_response
from ....core.security import get_client_ip, require_staff
from ....services.guide_service import guide_service

router = APIRouter()


@router.get("")
def list_guides(
    status: Optional[str] = Query(None, description="上架状态"),
    keyword: Optional[str] = Query(None, description="艺名/手机号/城市"),
    is_guide: Optional[bool] = Query(None, description="是否已认证"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(require_staff),
):
    """地陪列表（含未上架、待审核）"""
    items, total = guide_service.admin_list_guides(status, keyword, is_guide, page, page_size)
    return create_paginated_response(items, total, page, page_size)


@router.get("/{guide_id}")
def get_guide(guide_id: int, current_user: Dict[str, Any] = Depends(require_staff)):
    """地陪完整资料（含实名信息）"""
    return create_success_response(guide_service.admin_get_guide(guide_id))


@router.post("")
def create_guide(req: AdminGuideCreateRequest, request: Request,
                 current_user: Dict[str, Any] = Depends(require_staff)):
    """为已注册用户创建地陪资料"""
    data = req.model_dump(exclude_none=True, exclude={"user_phone", "is_guide"})
    is_guide = True if req.is_guide is None else req.is_guide
    guide = guide_service.admin_create_guide(req.user_phone, data, current_user["id"],
                                             is_guide=is_guide, ip_address=get_client_ip(request))
    return create_success_response(guide, "地陪已创建")


@router.put("/{guide_id}")
def update_guide(guide_id: int, req: AdminGuideUpdateRequest, request: Request,
                 current_user: Dict[str, Any] = Depends(require_staff)):
    """
    审核/定价/上下架

    上架要求已通过认证且实际价格大于0。
    """
    data = req.model_dump(exclude_none=True, exclude={"is_guide"})
    guide = guide_service.admin_update_guide(guide_id, data, current_user["id"],
                                             is_guide=req.is_guide, ip_address=get_client_ip(request))
    return create_success_response(guide, "地陪资料已更新")
