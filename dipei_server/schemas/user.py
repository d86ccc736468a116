"""
用户相关的请求模式
"""

from pydantic import BaseModel, Field
from typing import Optional

from ..models.user import UserRole


class UserProfileUpdateRequest(BaseModel):
    """用户资料更新请求"""
    nickname: Optional[str] = Field(None, max_length=50, description="昵称")
    avatar_id: Optional[int] = Field(None, description="头像附件ID")


class BanUserRequest(BaseModel):
    """封禁用户请求"""
    reason: str = Field(..., min_length=1, max_length=255, description="封禁原因")


class UpdateRoleRequest(BaseModel):
    """调整角色请求"""
    role: UserRole = Field(..., description="新角色")
