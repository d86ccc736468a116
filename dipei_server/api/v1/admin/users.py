"""
后台用户管理路由
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Any, Dict, Optional

from ....schemas.user import BanUserRequest, UpdateRoleRequest
from ....core.error_handler import create_paginated_response, create_success_response
from ....core.security import get_client_ip, require_admin, require_staff
from ....services.user_service import user_service

router = APIRouter()


@router.get("")
def list_users(
    keyword: Optional[str] = Query(None, description="手机号/昵称"),
    role: Optional[str] = Query(None, description="角色"),
    status: Optional[str] = Query(None, description="账号状态"),
    is_guide: Optional[bool] = Query(None, description="是否认证地陪"),
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页大小"),
    current_user: Dict[str, Any] = Depends(require_staff),
):
    """用户列表"""
    items, total = user_service.list_users(keyword, role, status, is_guide, page, page_size)
    return create_paginated_response(items, total, page, page_size)


@router.post("/{user_id}/ban")
def ban_user(user_id: int, req: BanUserRequest, request: Request,
             current_user: Dict[str, Any] = Depends(require_admin)):
    """封禁用户"""
    user = user_service.ban_user(user_id, req.reason, current_user["id"], get_client_ip(request))
    return create_success_response(user, "用户已封禁")


@router.post("/{user_id}/unban")
def unban_user(user_id: int, request: Request, current_user: Dict[str, Any] = Depends(require_admin)):
    """解封用户"""
    user = user_service.unban_user(user_id, current_user["id"], get_client_ip(request))
    return create_success_response(user, "用户已解封")


@router.put("/{user_id}/role")
def update_role(user_id: int, req: UpdateRoleRequest, request: Request,
                current_user: Dict[str, Any] = Depends(require_admin)):
    """调整用户角色"""
    user = user_service.update_role(user_id, req.role.value, current_user["id"], get_client_ip(request))
    return create_success_response(user, "角色已更新")
