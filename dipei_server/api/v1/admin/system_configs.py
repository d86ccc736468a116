"""
后台系统配置路由
"""

from fastapi import APIRouter, Depends, Request
from typing import Any, Dict

from ....schemas.system_config import SystemConfigUpdateRequest
from ....core.error_handler import create_success_response
from ....core.security import get_client_ip, require_admin
from ....services.system_config_service import system_config_service

router = APIRouter()


@router.get("")
def list_configs(current_user: Dict[str, Any] = Depends(require_admin)):
    """全部配置项"""
    return create_success_response(system_config_service.list_all())


@router.put("")
def update_configs(req: SystemConfigUpdateRequest, request: Request,
                   current_user: Dict[str, Any] = Depends(require_admin)):
    """批量更新配置项"""
    configs = [item.model_dump() for item in req.configs]
    result = system_config_service.update_configs(configs, current_user["id"], get_client_ip(request))
    return create_success_response(result, "配置已更新")
