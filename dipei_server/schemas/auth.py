"""
认证相关的请求/响应模式
"""

from pydantic import BaseModel, Field
from typing import Literal, Optional


class RegisterRequest(BaseModel):
    """注册请求"""
    phone: str = Field(..., description="手机号", examples=["13800138000"])
    password: str = Field(..., description="密码，8-20位且包含字母和数字")
    nickname: Optional[str] = Field(None, max_length=50, description="昵称")


class LoginRequest(BaseModel):
    """密码登录请求"""
    phone: str = Field(..., description="手机号")
    password: str = Field(..., description="密码")


class SmsCodeRequest(BaseModel):
    """发送验证码请求"""
    phone: str = Field(..., description="手机号")
    usage: Literal["login", "reset_password"] = Field("login", description="验证码用途")


class SmsLoginRequest(BaseModel):
    """验证码登录请求"""
    phone: str = Field(..., description="手机号")
    code: str = Field(..., min_length=6, max_length=6, description="6位验证码")


class ResetPasswordRequest(BaseModel):
    """重置密码请求"""
    phone: str = Field(..., description="手机号")
    code: str = Field(..., min_length=6, max_length=6, description="6位验证码")
    new_password: str = Field(..., description="新密码")


class AuthResponse(BaseModel):
    """登录/注册响应"""
    user_id: int = Field(..., description="用户ID")
    phone: str = Field(..., description="手机号")
    nickname: Optional[str] = Field(None, description="昵称")
    role: str = Field(..., description="角色")
    is_guide: bool = Field(..., description="是否为认证地陪")
    token: str = Field(..., description="JWT访问令牌")
