"""
附件上传路由模块
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from typing import Any, Dict, Optional

from ...core.error_handler import create_success_response
from ...core.security import get_current_user
from ...services.attachment_service import attachment_service

router = APIRouter()


@router.post("/{usage}")
def upload_attachment(
    usage: str,
    file: UploadFile = File(..., description="图片文件"),
    context_id: Optional[str] = Form(None, description="关联ID（用户ID/订单ID）"),
    slot: Optional[str] = Form(None, description="槽位，同槽位覆盖"),
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    """
    上传图片

    usage: avatar / guide_photo / check_in / system
    """
    data = file.file.read()
    result = attachment_service.upload(usage, data, current_user, context_id=context_id, slot=slot)
    return create_success_response(result, "上传成功")
