"""
后台订单管理路由
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Any, Dict, Optional

from ....schemas.order import (
    AdminRefundRequest,
    AssignGuidesRequest,
    OrderStatusUpdateRequest,
    StaffCustomOrderRequest,
)
from ....core.error_handler import create_paginated_response, create_success_response
from ....core.security import get_client_ip, require_admin, require_staff
from ....services.order_service import order_service

router = APIRouter()


@router.get("")
def list_orders(
    status: Optional[str] = Query(None, description="订单状态"),
    order_type: Optional[str] = Query(None, description="订单类型 normal/custom"),
    keyword: Optional[str] = Query(None, description="订单号/手机号/艺名"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(require_staff),
):
    """订单列表"""
    items, total = order_service.admin_list_orders(status, order_type, keyword, page, page_size)
    return create_paginated_response(items, total, page, page_size)


@router.post("/custom")
def create_custom_order_for_user(req: StaffCustomOrderRequest, request: Request,
                                 current_user: Dict[str, Any] = Depends(require_staff)):
    """客服代用户下定制单"""
    order = order_service.staff_create_custom_order(
        operator_id=current_user["id"],
        user_phone=req.user_phone,
        guide_phone=req.guide_phone,
        price_per_hour=req.price_per_hour,
        duration=req.duration,
        service_start_time=req.service_start_time,
        service_address=req.service_address,
        content=req.content,
        requirements=req.requirements,
        ip_address=get_client_ip(request),
    )
    return create_success_response(order, "定制单已创建")


@router.get("/{order_id}")
def get_order(order_id: int, current_user: Dict[str, Any] = Depends(require_staff)):
    """订单详情"""
    return create_success_response(order_service.get_order_detail(order_id, current_user))


@router.post("/{order_id}/candidates")
def assign_candidates(order_id: int, req: AssignGuidesRequest, request: Request,
                      current_user: Dict[str, Any] = Depends(require_staff)):
    """为定制单指派候选地陪"""
    candidates = order_service.assign_candidates(order_id, req.guide_ids, current_user["id"],
                                                 get_client_ip(request))
    return create_success_response(candidates, "候选地陪已指派")


@router.put("/{order_id}/status")
def update_order_status(order_id: int, req: OrderStatusUpdateRequest, request: Request,
                        current_user: Dict[str, Any] = Depends(require_admin)):
    """强制流转订单状态"""
    order = order_service.admin_update_status(order_id, req.status, current_user["id"], get_client_ip(request))
    return create_success_response(order, "订单状态已更新")


@router.post("/{order_id}/refund")
def refund_order(order_id: int, req: AdminRefundRequest, request: Request,
                 current_user: Dict[str, Any] = Depends(require_admin)):
    """后台退款（指定金额）"""
    result = order_service.admin_refund(order_id, req.amount, req.reason, current_user["id"],
                                        get_client_ip(request))
    return create_success_response(result, "退款成功")
