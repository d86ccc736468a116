"""
系统配置服务
公开配置项白名单读取与后台批量更新
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.database import db_manager
from ..core.exceptions import ValidationError
from ..models.audit import AuditAction, AuditTargetType
from .audit_service import audit_service

logger = logging.getLogger(__name__)

# 允许前台读取的配置项
PUBLIC_CONFIG_KEYS = (
    "cs_qrcode_url",
    "cs_phone",
    "app_version_android",
    "app_version_ios",
    "terms_of_service_url",
    "privacy_policy_url",
)

MAX_KEY_LENGTH = 64


class SystemConfigService:
    """系统配置服务"""

    def __init__(self):
        self.db = db_manager

    def get_public_configs(self) -> Dict[str, Optional[str]]:
        """返回白名单内的配置，未设置的项为 None"""
        placeholders = ", ".join(["?"] * len(PUBLIC_CONFIG_KEYS))
        rows = self.db.fetch_all(
            f"SELECT config_key, value FROM system_configs WHERE config_key IN ({placeholders})",
            list(PUBLIC_CONFIG_KEYS),
        )
        values = {row["config_key"]: row["value"] for row in rows}
        return {key: values.get(key) for key in PUBLIC_CONFIG_KEYS}

    def list_all(self) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            'SELECT config_key AS "key", value, description, updated_at FROM system_configs ORDER BY config_key'
        )

    def update_configs(self, configs: List[Dict[str, Any]], operator_id: int,
                       ip_address: Optional[str] = None) -> List[Dict[str, Any]]:
        """批量新增或更新配置项"""
        if not configs:
            raise ValidationError("配置列表不能为空")
        for item in configs:
            key = (item.get("key") or "").strip()
            if not key or len(key) > MAX_KEY_LENGTH:
                raise ValidationError("配置项名称无效")

        now = datetime.now()
        with self.db.transaction() as conn:
            for item in configs:
                key = item["key"].strip()
                existing = conn.execute(
                    "SELECT config_key FROM system_configs WHERE config_key = ?", [key]
                ).fetchone()
                if existing:
                    conn.execute(
                        "UPDATE system_configs SET value = ?, description = COALESCE(?, description), "
                        "updated_at = ? WHERE config_key = ?",
                        [item.get("value"), item.get("description"), now, key],
                    )
                else:
                    conn.execute(
                        "INSERT INTO system_configs (config_key, value, description, updated_at) VALUES (?, ?, ?, ?)",
                        [key, item.get("value"), item.get("description"), now],
                    )
            audit_service.log(operator_id, AuditAction.UPDATE_CONFIG, AuditTargetType.SYSTEM_CONFIG, None,
                              {"keys": [item["key"].strip() for item in configs]}, ip_address)

        logger.info("System configs updated by %s", operator_id)
        return self.list_all()


system_config_service = SystemConfigService()
