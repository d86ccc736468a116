"""
安全相关功能
JWT签发与校验、密码哈希、当前用户解析与角色权限依赖
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config.settings import settings
from .database import db_manager
from .exceptions import AuthenticationError, PermissionDeniedError, UserBannedError

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """bcrypt哈希密码"""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """校验密码"""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


class SecurityManager:
    """安全管理器"""

    def create_jwt_token(self, user: Dict[str, Any], additional_claims: Dict[str, Any] = None) -> str:
        """创建JWT token，载荷包含 id / phone / role"""
        now = datetime.now(timezone.utc)
        payload = {
            "id": user["id"],
            "phone": user["phone"],
            "role": user["role"],
            "exp": now + timedelta(hours=settings.jwt_expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)

        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("登录已过期，请重新登录")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"无效的token: {e}")

    def get_user_id_from_token(self, token: str) -> int:
        """从token中提取用户ID"""
        payload = self.decode_jwt_token(token)
        user_id = payload.get("id")
        if not user_id:
            raise AuthenticationError("token缺少用户信息")
        return int(user_id)


# 全局安全管理器实例
security_manager = SecurityManager()

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> int:
    """从Authorization header中提取并验证用户ID"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("未登录或token缺失")
    return security_manager.get_user_id_from_token(credentials.credentials)


def get_current_user(user_id: int = Depends(get_current_user_id)) -> Dict[str, Any]:
    """加载当前用户，并拦截已封禁账号"""
    user = db_manager.fetch_one(
        "SELECT id, phone, nickname, avatar_id, role, is_guide, balance, status, ban_reason "
        "FROM users WHERE id = ?",
        [user_id]
    )
    if not user:
        raise AuthenticationError("用户不存在或token已失效")
    if user["status"] == "banned":
        raise UserBannedError("账号已被封禁", details={"reason": user.get("ban_reason")})
    return user


def require_roles(*roles: str) -> Callable[..., Dict[str, Any]]:
    """生成角色校验依赖"""

    def checker(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user["role"] not in roles:
            logger.info("Permission denied for user %s (role=%s)", current_user["id"], current_user["role"])
            raise PermissionDeniedError("权限不足")
        return current_user

    return checker


require_admin = require_roles("admin")
require_staff = require_roles("cs", "admin")


def get_client_ip(request: Request) -> Optional[str]:
    """获取客户端IP（最长45位，兼容IPv6）"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    if request.client:
        return request.client.host[:45]
    return None
