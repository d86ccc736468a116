"""
加时路由模块
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict

from ...core.error_handler import create_success_response
from ...core.security import get_current_user
from ...services.overtime_service import overtime_service

router = APIRouter()


@router.post("/{overtime_id}/pay")
def pay_overtime(overtime_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    """支付加时费，订单金额与结束时间同步顺延"""
    result = overtime_service.pay_overtime(current_user["id"], overtime_id)
    return create_success_response(result, "加时支付成功")
