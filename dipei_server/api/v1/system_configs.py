"""
公开系统配置路由模块
"""

from fastapi import APIRouter

from ...core.error_handler import create_success_response
from ...services.system_config_service import system_config_service

router = APIRouter()


@router.get("")
def get_public_configs():
    """客服二维码、版本号等公开配置"""
    return create_success_response(system_config_service.get_public_configs())
