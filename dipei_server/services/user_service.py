"""
用户服务
处理用户资料维护以及后台的用户管理（封禁、解封、角色调整）
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import db_manager
from ..core.exceptions import BusinessRuleError, PermissionDeniedError, UserNotFoundError, ValidationError
from ..models.audit import AuditAction, AuditTargetType
from ..models.user import UserRole
from .audit_service import audit_service

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "id, phone, nickname, avatar_id, role, is_guide, balance, status, ban_reason, banned_at, created_at, updated_at"
)


class UserService:
    """用户服务"""

    def __init__(self):
        self.db = db_manager

    def get_user(self, user_id: int) -> Dict[str, Any]:
        row = self.db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", [user_id])
        if not row:
            raise UserNotFoundError("用户不存在")
        return row

    def update_profile(self, user_id: int, nickname: Optional[str] = None,
                       avatar_id: Optional[int] = None) -> Dict[str, Any]:
        """更新昵称/头像"""
        update_fields = []
        params: List[Any] = []

        if nickname is not None:
            if not nickname.strip():
                raise ValidationError("昵称不能为空")
            update_fields.append("nickname = ?")
            params.append(nickname.strip())

        if avatar_id is not None:
            attachment = self.db.fetch_one(
                "SELECT id, usage_type, uploader_id, context_id FROM attachments WHERE id = ?", [avatar_id]
            )
            if not attachment or attachment["usage_type"] != "avatar":
                raise ValidationError("无效的头像")
            if attachment["uploader_id"] != user_id and attachment["context_id"] != str(user_id):
                raise PermissionDeniedError("只能使用自己上传的头像")
            update_fields.append("avatar_id = ?")
            params.append(avatar_id)

        if update_fields:
            update_fields.append("updated_at = ?")
            params.extend([datetime.now(), user_id])
            with self.db.transaction() as conn:
                conn.execute(f"UPDATE users SET {', '.join(update_fields)} WHERE id = ?", params)

        return self.get_user(user_id)

    def list_users(
        self,
        keyword: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        is_guide: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        后台用户列表

        Args:
            keyword: 手机号或昵称模糊匹配
            role: 角色过滤
            status: 账号状态过滤
            is_guide: 是否认证地陪

        Returns:
            (用户列表, 总数)
        """
        conditions = []
        params: List[Any] = []
        if keyword:
            conditions.append("(phone LIKE ? OR nickname LIKE ?)")
            params.extend([f"%{keyword}%", f"%{keyword}%"])
        if role:
            conditions.append("role = ?")
            params.append(role)
        if status:
            conditions.append("status = ?")
            params.append(status)
        if is_guide is not None:
            conditions.append("is_guide = ?")
            params.append(is_guide)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.db.fetch_value(f"SELECT COUNT(*) FROM users {where_clause}", params, 0)
        items = self.db.fetch_all(
            f"SELECT {USER_COLUMNS} FROM users {where_clause} ORDER BY id DESC LIMIT ? OFFSET ?",
            params + [page_size, (page - 1) * page_size],
        )
        return items, total

    def ban_user(self, user_id: int, reason: str, operator_id: int,
                 ip_address: Optional[str] = None) -> Dict[str, Any]:
        """封禁用户"""
        if not reason or not reason.strip():
            raise ValidationError("请填写封禁原因")
        if user_id == operator_id:
            raise BusinessRuleError("不能封禁自己")

        user = self.get_user(user_id)
        if user["status"] == "banned":
            raise BusinessRuleError("该用户已被封禁")

        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET status = 'banned', ban_reason = ?, banned_at = ?, updated_at = ? WHERE id = ?",
                [reason.strip(), datetime.now(), datetime.now(), user_id],
            )
            audit_service.log(operator_id, AuditAction.BAN_USER, AuditTargetType.USER, user_id,
                              {"reason": reason.strip()}, ip_address)

        logger.info("User %s banned by %s", user_id, operator_id)
        return self.get_user(user_id)

    def unban_user(self, user_id: int, operator_id: int, ip_address: Optional[str] = None) -> Dict[str, Any]:
        """解封用户"""
        user = self.get_user(user_id)
        if user["status"] != "banned":
            raise BusinessRuleError("该用户未被封禁")

        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET status = 'active', ban_reason = NULL, banned_at = NULL, updated_at = ? WHERE id = ?",
                [datetime.now(), user_id],
            )
            audit_service.log(operator_id, AuditAction.UNBAN_USER, AuditTargetType.USER, user_id,
                              {"previous_reason": user["ban_reason"]}, ip_address)

        logger.info("User %s unbanned by %s", user_id, operator_id)
        return self.get_user(user_id)

    def update_role(self, user_id: int, role: str, operator_id: int,
                    ip_address: Optional[str] = None) -> Dict[str, Any]:
        """调整用户角色"""
        try:
            new_role = UserRole(role)
        except ValueError:
            raise ValidationError("无效的角色")
        if user_id == operator_id:
            raise BusinessRuleError("不能修改自己的角色")

        user = self.get_user(user_id)
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET role = ?, updated_at = ? WHERE id = ?",
                [new_role.value, datetime.now(), user_id],
            )
            audit_service.log(operator_id, AuditAction.UPDATE_USER_ROLE, AuditTargetType.USER, user_id,
                              {"from": user["role"], "to": new_role.value}, ip_address)
        return self.get_user(user_id)


user_service = UserService()
