"""
后台提现审核路由
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Any, Dict, Optional

from ....schemas.wallet import WithdrawAuditRequest
from ....core.error_handler import create_paginated_response, create_success_response
from ....core.security import get_client_ip, require_admin
from ....services.withdraw_service import withdraw_service

router = APIRouter()


@router.get("")
def list_withdrawals(
    status: Optional[str] = Query(None, description="提现状态"),
    user_id: Optional[int] = Query(None, description="用户ID"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(require_admin),
):
    """提现单列表"""
    items, total = withdraw_service.list_withdrawals(status, user_id, page, page_size)
    return create_paginated_response(items, total, page, page_size)


@router.post("/{withdrawal_id}/audit")
def audit_withdrawal(withdrawal_id: int, req: WithdrawAuditRequest, request: Request,
                     current_user: Dict[str, Any] = Depends(require_admin)):
    """审核提现：completed 打款完成，rejected 驳回并退回余额"""
    result = withdraw_service.audit_withdrawal(withdrawal_id, req.status, req.admin_note,
                                               current_user["id"], get_client_ip(request))
    return create_success_response(result, "审核完成")
