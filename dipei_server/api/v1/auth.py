"""
用户认证路由模块
手机号+密码注册登录、短信验证码登录与重置密码
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict

from ...schemas.auth import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SmsCodeRequest,
    SmsLoginRequest,
)
from ...core.error_handler import create_success_response
from ...core.security import get_current_user
from ...services.auth_service import auth_service
from ...services.verification_service import verification_service

router = APIRouter()


@router.post("/register")
def register(req: RegisterRequest):
    """
    手机号注册

    注册成功直接返回token，等同于登录。
    """
    result = auth_service.register(req.phone, req.password, req.nickname)
    return create_success_response(AuthResponse(**result).model_dump(), "注册成功")


@router.post("/login")
def login(req: LoginRequest):
    """手机号+密码登录"""
    result = auth_service.login(req.phone, req.password)
    return create_success_response(AuthResponse(**result).model_dump(), "登录成功")


@router.post("/sms-code")
def send_sms_code(req: SmsCodeRequest):
    """发送短信验证码"""
    verification_service.send_code(req.phone, req.usage)
    return create_success_response(message="验证码已发送")


@router.post("/login-by-code")
def login_by_code(req: SmsLoginRequest):
    """短信验证码登录（未注册自动注册）"""
    result = auth_service.login_by_code(req.phone, req.code)
    return create_success_response(AuthResponse(**result).model_dump(), "登录成功")


@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest):
    """验证码重置密码"""
    auth_service.reset_password(req.phone, req.code, req.new_password)
    return create_success_response(message="密码已重置")


@router.get("/me")
def get_me(current_user: Dict[str, Any] = Depends(get_current_user)):
    """获取当前登录用户"""
    return create_success_response(auth_service.get_me(current_user["id"]))
