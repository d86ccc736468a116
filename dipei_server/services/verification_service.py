"""
短信验证码服务
验证码落库保存并设置有效期，短信通过 MockSmsSender 发送（仅打印日志）
"""

import logging
import secrets
from datetime import datetime, timedelta

from ..config.settings import settings
from ..core.database import db_manager
from ..core.exceptions import ValidationError
from ..utils.validators import is_valid_phone

logger = logging.getLogger(__name__)

CODE_USAGES = ("login", "reset_password")


class MockSmsSender:
    """开发环境短信发送器，不调用任何外部服务"""

    def send(self, phone: str, code: str) -> bool:
        logger.info("[MOCK SMS] sign=%s to=%s code=%s", settings.sms_sign_name or "-", phone, code)
        return True


class VerificationService:
    """验证码的生成、发送与核销"""

    def __init__(self, sender: MockSmsSender = None):
        self.db = db_manager
        self.sender = sender or MockSmsSender()

    def send_code(self, phone: str, usage: str) -> None:
        """生成6位验证码并发送"""
        if not is_valid_phone(phone):
            raise ValidationError("手机号格式不正确")
        if usage not in CODE_USAGES:
            raise ValidationError("不支持的验证码用途")

        code = f"{secrets.randbelow(900000) + 100000}"
        now = datetime.now()
        with self.db.transaction() as conn:
            # 同一用途旧验证码作废
            conn.execute(
                "UPDATE verification_codes SET used = TRUE WHERE phone = ? AND usage = ? AND used = FALSE",
                [phone, usage],
            )
            conn.execute(
                """
                INSERT INTO verification_codes (phone, code, usage, used, expires_at, created_at)
                VALUES (?, ?, ?, FALSE, ?, ?)
                """,
                [phone, code, usage, now + timedelta(minutes=settings.sms_code_ttl_minutes), now],
            )

        if not self.sender.send(phone, code):
            raise ValidationError("短信发送失败，请稍后重试")

    def verify_code(self, phone: str, code: str, usage: str) -> bool:
        """校验并核销验证码，成功返回 True"""
        with self.db.transaction() as conn:
            row = conn.execute(
                """
                UPDATE verification_codes SET used = TRUE
                WHERE id = (
                    SELECT id FROM verification_codes
                    WHERE phone = ? AND code = ? AND usage = ? AND used = FALSE AND expires_at > ?
                    ORDER BY id DESC LIMIT 1
                )
                RETURNING id
                """,
                [phone, code, usage, datetime.now()],
            ).fetchone()
        return row is not None


verification_service = VerificationService()
