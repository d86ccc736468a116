"""
用户资料路由模块
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict

from ...schemas.user import UserProfileUpdateRequest
from ...core.error_handler import create_success_response
from ...core.security import get_current_user
from ...services.user_service import user_service

router = APIRouter()


@router.get("/me")
def get_my_profile(current_user: Dict[str, Any] = Depends(get_current_user)):
    """获取当前用户资料"""
    return create_success_response(user_service.get_user(current_user["id"]))


@router.put("/me")
def update_my_profile(req: UserProfileUpdateRequest,
                      current_user: Dict[str, Any] = Depends(get_current_user)):
    """更新昵称/头像"""
    user = user_service.update_profile(current_user["id"], req.nickname, req.avatar_id)
    return create_success_response(user, "资料已更新")
