"""
钱包路由模块
余额、流水与提现申请
"""

from fastapi import APIRouter, Depends, Query
from typing import Any, Dict

from ...schemas.wallet import WithdrawApplyRequest
from ...core.error_handler import create_paginated_response, create_success_response
from ...core.security import get_current_user
from ...services.wallet_service import wallet_service

router = APIRouter()


@router.get("/summary")
def get_wallet_summary(current_user: Dict[str, Any] = Depends(get_current_user)):
    """余额、冻结中金额与累计收入"""
    return create_success_response(wallet_service.get_summary(current_user["id"]))


@router.get("/logs")
def get_wallet_logs(
    page: int = Query(1, ge=1, description="页码"),
    limit: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """钱包流水"""
    items, total = wallet_service.get_logs(current_user["id"], page, limit)
    return create_paginated_response(items, total, page, limit)


@router.post("/withdraw")
def apply_withdraw(req: WithdrawApplyRequest, current_user: Dict[str, Any] = Depends(get_current_user)):
    """申请提现，申请金额立即从余额冻结"""
    result = wallet_service.apply_withdraw(current_user["id"], req.amount, req.user_note)
    return create_success_response(result, "提现申请已提交")
