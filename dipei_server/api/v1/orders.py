"""
订单路由模块
下单、支付、取消、选地陪、接单、打卡、退款与加时
"""

from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Literal, Optional

from ...schemas.order import (
    CheckInRequest,
    CustomOrderCreateRequest,
    NormalOrderCreateRequest,
    OvertimeCreateRequest,
    PayOrderRequest,
    SelectGuideRequest,
)
from ...core.error_handler import create_paginated_response, create_success_response
from ...core.security import get_current_user
from ...services.order_service import order_service
from ...services.overtime_service import overtime_service

router = APIRouter()


@router.post("")
def create_order(req: NormalOrderCreateRequest,
                 current_user: Dict[str, Any] = Depends(get_current_user)):
    """
    创建普通预约单

    金额 = 地陪实际价格 × 服务时长，创建后需在规定时间内支付。
    """
    order = order_service.create_normal_order(
        user_id=current_user["id"],
        guide_id=req.guide_id,
        service_start_time=req.service_start_time,
        service_hours=req.service_hours,
        service_address=req.service_address,
        remark=req.remark,
    )
    return create_success_response(order, "下单成功")


@router.post("/custom")
def create_custom_order(req: CustomOrderCreateRequest,
                        current_user: Dict[str, Any] = Depends(get_current_user)):
    """创建定制单（支付订金后由客服指派候选地陪）"""
    order = order_service.create_custom_order(
        user_id=current_user["id"],
        service_date=req.service_date,
        city=req.city,
        content=req.content,
        budget=req.budget,
        requirements=req.requirements,
    )
    return create_success_response(order, "定制需求已提交")


@router.get("")
def list_my_orders(
    role: Literal["user", "guide"] = Query("user", description="以下单用户或地陪身份查看"),
    status: Optional[str] = Query(None, description="订单状态"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """我的订单列表"""
    items, total = order_service.list_user_orders(
        current_user["id"], as_guide=(role == "guide"), status=status, page=page, page_size=page_size
    )
    return create_paginated_response(items, total, page, page_size)


@router.get("/{order_id}")
def get_order(order_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """订单详情"""
    return create_success_response(order_service.get_order_detail(order_id, current_user))


@router.post("/{order_id}/payment")
def pay_order(order_id: int, req: Optional[PayOrderRequest] = None,
              current_user: Dict[str, Any] = Depends(get_current_user)):
    """支付订单"""
    result = order_service.pay_order(current_user["id"], order_id)
    return create_success_response(result, "支付成功")


@router.post("/{order_id}/cancel")
def cancel_order(order_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """取消未支付订单"""
    return create_success_response(order_service.cancel_order(current_user["id"], order_id), "订单已取消")


@router.get("/{order_id}/candidates")
def list_candidates(order_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """定制单候选地陪"""
    return create_success_response(order_service.list_candidates(order_id, current_user))


@router.post("/{order_id}/select-guide")
def select_guide(order_id: int, req: SelectGuideRequest,
                 current_user: Dict[str, Any] = Depends(get_current_user)):
    """从候选中选定地陪"""
    order = order_service.select_guide(current_user["id"], order_id, req.guide_id)
    return create_success_response(order, "已选定地陪")


@router.post("/{order_id}/accept")
def accept_order(order_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """地陪接单"""
    return create_success_response(order_service.accept_order(current_user["id"], order_id), "接单成功")


@router.post("/{order_id}/check-in")
def check_in(order_id: int, req: CheckInRequest,
             current_user: Dict[str, Any] = Depends(get_current_user)):
    """地陪开始/结束服务打卡"""
    order = order_service.check_in(order_id, current_user["id"], req.type, req.attachment_id, req.lat, req.lng)
    return create_success_response(order, "打卡成功")


@router.post("/{order_id}/refund")
def request_refund(order_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """
    用户申请退款

    支付后规定时间内全额退款，超时扣除违约金。
    """
    result = order_service.request_refund(current_user["id"], order_id)
    return create_success_response(result, "退款成功")


@router.post("/{order_id}/overtime")
def request_overtime(order_id: int, req: OvertimeCreateRequest,
                     current_user: Dict[str, Any] = Depends(get_current_user)):
    """申请加时（服务中）"""
    record = overtime_service.request_overtime(current_user["id"], order_id, req.hours)
    return create_success_response(record, "加时申请已创建")
