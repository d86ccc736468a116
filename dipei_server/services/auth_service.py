"""
认证服务
处理手机号注册、密码/验证码登录、重置密码和JWT签发
"""

import logging
import secrets
from typing import Any, Dict, Optional

from ..core.database import db_manager
from ..core.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    UserBannedError,
    UserNotFoundError,
    ValidationError,
)
from ..core.security import hash_password, security_manager, verify_password
from ..models.user import User
from ..utils.validators import is_valid_password, is_valid_phone
from .verification_service import verification_service

logger = logging.getLogger(__name__)


class AuthService:
    """认证服务"""

    def __init__(self):
        self.db = db_manager

    def register(self, phone: str, password: str, nickname: Optional[str] = None) -> Dict[str, Any]:
        """手机号+密码注册，注册成功直接返回登录态"""
        self._validate_phone(phone)
        self._validate_password(password)

        if self._find_user_by_phone(phone):
            raise BusinessRuleError("该手机号已注册", "PHONE_EXISTS")

        user = self._create_user(phone, password, nickname)
        logger.info("User registered: id=%s", user["id"])
        return self._build_auth_result(user)

    def login(self, phone: str, password: str) -> Dict[str, Any]:
        """手机号+密码登录"""
        user = self._find_user_by_phone(phone)
        if not user or not verify_password(password, user["password_hash"]):
            raise AuthenticationError("手机号或密码错误", "INVALID_CREDENTIALS")
        self._ensure_not_banned(user)
        return self._build_auth_result(user)

    def login_by_code(self, phone: str, code: str) -> Dict[str, Any]:
        """
        短信验证码登录

        未注册的手机号自动注册，初始密码随机生成。
        """
        self._validate_phone(phone)
        if not verification_service.verify_code(phone, code, "login"):
            raise ValidationError("验证码错误或已过期", "INVALID_SMS_CODE")

        user = self._find_user_by_phone(phone)
        if not user:
            user = self._create_user(phone, secrets.token_urlsafe(16) + "a1", None)
            logger.info("User auto-registered by sms login: id=%s", user["id"])
        self._ensure_not_banned(user)
        return self._build_auth_result(user)

    def reset_password(self, phone: str, code: str, new_password: str) -> None:
        """验证码重置密码"""
        self._validate_password(new_password)
        if not verification_service.verify_code(phone, code, "reset_password"):
            raise ValidationError("验证码错误或已过期", "INVALID_SMS_CODE")

        user = self._find_user_by_phone(phone)
        if not user:
            raise UserNotFoundError("用户不存在")

        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE users SET password_hash = ?, updated_at = current_timestamp WHERE id = ?",
                [hash_password(new_password), user["id"]],
            )
        logger.info("Password reset for user %s", user["id"])

    def get_me(self, user_id: int) -> Dict[str, Any]:
        """获取当前用户信息"""
        row = self.db.fetch_one(
            "SELECT id, phone, nickname, avatar_id, role, is_guide, balance, status, created_at, updated_at "
            "FROM users WHERE id = ?",
            [user_id],
        )
        if not row:
            raise UserNotFoundError("用户不存在")
        return User.model_validate(row).model_dump()

    def _validate_phone(self, phone: str):
        if not is_valid_phone(phone):
            raise ValidationError("手机号格式不正确")

    def _validate_password(self, password: str):
        if not is_valid_password(password):
            raise ValidationError("密码需为8-20位，且同时包含字母和数字")

    def _ensure_not_banned(self, user: Dict[str, Any]):
        if user["status"] == "banned":
            raise UserBannedError("账号已被封禁", details={"reason": user.get("ban_reason")})

    def _find_user_by_phone(self, phone: str) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one("SELECT * FROM users WHERE phone = ?", [phone])

    def _create_user(self, phone: str, password: str, nickname: Optional[str]) -> Dict[str, Any]:
        nickname = nickname or f"用户{phone[-4:]}"
        with self.db.transaction() as conn:
            user_id = conn.execute(
                "INSERT INTO users (phone, password_hash, nickname) VALUES (?, ?, ?) RETURNING id",
                [phone, hash_password(password), nickname],
            ).fetchone()[0]
        return self.db.fetch_one("SELECT * FROM users WHERE id = ?", [user_id])

    def _build_auth_result(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "user_id": user["id"],
            "phone": user["phone"],
            "nickname": user["nickname"],
            "role": user["role"],
            "is_guide": bool(user["is_guide"]),
            "token": security_manager.create_jwt_token(user),
        }


auth_service = AuthService()
