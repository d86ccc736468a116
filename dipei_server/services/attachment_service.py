"""
附件服务
按用途（usage）选择存储策略，图片经 Pillow 处理后按槽位覆盖写入

存储策略：
- avatar:      avatars/u_{ctx}.webp        200x200 居中裁剪
- guide_photo: guides/u_{ctx}_p_{slot}.webp 宽度不超过1080，等比缩放
- check_in:    orders/o_{ctx}_{slot}.webp   宽度不超过1080，等比缩放
- system:      system/{slot}.png            原图转PNG（仅管理员）
"""

import io
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from ..config.settings import settings
from ..core.database import db_manager
from ..core.exceptions import PermissionDeniedError, ValidationError
from ..models.attachment import AttachmentUsage

logger = logging.getLogger(__name__)

MAX_IMAGE_WIDTH = 1080
AVATAR_SIZE = (200, 200)
SLOT_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,32}$")


def _fit_avatar(image: Image.Image) -> Image.Image:
    return ImageOps.fit(image, AVATAR_SIZE, method=Image.Resampling.LANCZOS)


def _limit_width(image: Image.Image) -> Image.Image:
    if image.width > MAX_IMAGE_WIDTH:
        height = round(image.height * MAX_IMAGE_WIDTH / image.width)
        return image.resize((MAX_IMAGE_WIDTH, height), Image.Resampling.LANCZOS)
    return image


@dataclass(frozen=True)
class StorageStrategy:
    """单个用途的存储策略"""
    key_template: str
    image_format: str
    transform: Callable[[Image.Image], Image.Image]
    admin_only: bool = False

    @property
    def mime_type(self) -> str:
        return f"image/{self.image_format.lower()}"


STRATEGIES: Dict[AttachmentUsage, StorageStrategy] = {
    AttachmentUsage.AVATAR: StorageStrategy("avatars/u_{ctx}.webp", "WEBP", _fit_avatar),
    AttachmentUsage.GUIDE_PHOTO: StorageStrategy("guides/u_{ctx}_p_{slot}.webp", "WEBP", _limit_width),
    AttachmentUsage.CHECK_IN: StorageStrategy("orders/o_{ctx}_{slot}.webp", "WEBP", _limit_width),
    AttachmentUsage.SYSTEM: StorageStrategy("system/{slot}.png", "PNG", lambda image: image, admin_only=True),
}


class AttachmentService:
    """附件服务"""

    def __init__(self):
        self.db = db_manager

    def upload(
        self,
        usage: str,
        data: bytes,
        user: Dict[str, Any],
        context_id: Optional[str] = None,
        slot: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        处理并保存上传的图片

        Args:
            usage: 附件用途
            data: 原始文件内容
            user: 当前用户
            context_id: 关联对象ID（用户ID或订单ID），缺省为当前用户ID
            slot: 槽位（同一槽位重复上传会覆盖）

        Returns:
            dict: id / url / key / usage
        """
        try:
            usage_enum = AttachmentUsage(usage)
        except ValueError:
            raise ValidationError("不支持的附件用途")
        strategy = STRATEGIES[usage_enum]

        if len(data) > settings.max_upload_bytes:
            raise ValidationError("文件大小不能超过10MB", "FILE_TOO_LARGE")
        if not data:
            raise ValidationError("文件内容为空", "UNSUPPORTED_FILE")

        context_id = str(context_id or user["id"])
        slot = str(slot) if slot is not None else "0"
        if not SLOT_PATTERN.match(slot) or not SLOT_PATTERN.match(context_id):
            raise ValidationError("无效的槽位或关联ID")
        self._check_permission(usage_enum, strategy, user, context_id)

        image = self._open_image(data)
        image = strategy.transform(image)
        key = strategy.key_template.format(ctx=context_id, slot=slot)
        size = self._write_file(key, image, strategy.image_format)

        url = f"{settings.upload_base_url.rstrip('/')}/{key}?t={int(time.time() * 1000)}"
        attachment_id = self._upsert_record(key, url, usage_enum, user["id"], context_id,
                                            strategy.mime_type, size)

        logger.info("Attachment %s saved: usage=%s key=%s size=%s", attachment_id, usage_enum.value, key, size)
        return {"id": attachment_id, "url": url, "key": key, "usage": usage_enum.value}

    def get_attachment(self, attachment_id: int) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM attachments WHERE id = ?", [attachment_id])

    def _check_permission(self, usage: AttachmentUsage, strategy: StorageStrategy,
                          user: Dict[str, Any], context_id: str):
        if user["role"] == "admin":
            return
        if strategy.admin_only:
            raise PermissionDeniedError("仅管理员可上传系统图片")
        if usage in (AttachmentUsage.AVATAR, AttachmentUsage.GUIDE_PHOTO):
            if context_id != str(user["id"]):
                raise PermissionDeniedError("只能上传自己的图片")
        elif usage == AttachmentUsage.CHECK_IN:
            order = self.db.fetch_one("SELECT guide_id FROM orders WHERE id = ?", [int(context_id)]) \
                if context_id.isdigit() else None
            if not order or order["guide_id"] != user["id"]:
                raise PermissionDeniedError("只能为自己服务的订单上传打卡照片")

    def _open_image(self, data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError):
            raise ValidationError("仅支持上传图片文件", "UNSUPPORTED_FILE")

        image = ImageOps.exif_transpose(image)
        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
        return image

    def _write_file(self, key: str, image: Image.Image, image_format: str) -> int:
        target = Path(settings.upload_dir) / key
        target.parent.mkdir(parents=True, exist_ok=True)
        buffer = io.BytesIO()
        if image_format == "WEBP":
            image.save(buffer, format="WEBP", quality=80)
        else:
            image.save(buffer, format=image_format)
        payload = buffer.getvalue()
        target.write_bytes(payload)
        return len(payload)

    def _upsert_record(self, key: str, url: str, usage: AttachmentUsage, uploader_id: int,
                       context_id: str, mime_type: str, size: int) -> int:
        now = datetime.now()
        with self.db.transaction() as conn:
            existing = conn.execute("SELECT id FROM attachments WHERE storage_key = ?", [key]).fetchone()
            if existing:
                conn.execute(
                    "UPDATE attachments SET url = ?, uploader_id = ?, mime_type = ?, size = ?, updated_at = ? "
                    "WHERE id = ?",
                    [url, uploader_id, mime_type, size, now, existing[0]],
                )
                return existing[0]
            return conn.execute(
                """
                INSERT INTO attachments (storage_key, url, usage_type, uploader_id, context_id, mime_type, size,
                                         created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) RETURNING id
                """,
                [key, url, usage.value, uploader_id, context_id, mime_type, size, now, now],
            ).fetchone()[0]


attachment_service = AttachmentService()
