"""
后台审计日志路由
"""

from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, Optional

from ....core.error_handler import create_paginated_response
from ....core.security import require_admin
from ....services.audit_service import audit_service

router = APIRouter()


@router.get("")
def list_audit_logs(
    operator_id: Optional[int] = Query(None, description="操作人ID"),
    action: Optional[str] = Query(None, description="操作类型"),
    target_type: Optional[str] = Query(None, description="对象类型"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(require_admin),
):
    """审计日志"""
    items, total = audit_service.list_logs(page, page_size, operator_id, action, target_type)
    return create_paginated_response(items, total, page, page_size)
