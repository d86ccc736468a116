"""
用户相关数据模型
"""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum
from .base import BaseEntity, TimestampMixin


class UserRole(str, Enum):
    """用户角色枚举"""
    USER = "user"     # 普通用户
    CS = "cs"         # 客服
    ADMIN = "admin"   # 管理员


class UserStatus(str, Enum):
    """账号状态枚举"""
    ACTIVE = "active"
    BANNED = "banned"


STAFF_ROLES = (UserRole.CS.value, UserRole.ADMIN.value)


class User(BaseEntity, TimestampMixin):
    """用户完整模型（不含密码哈希）"""
    id: int = Field(..., description="用户ID")
    phone: str = Field(..., description="手机号")
    nickname: Optional[str] = Field(None, max_length=100, description="用户昵称")
    avatar_id: Optional[int] = Field(None, description="头像附件ID")
    role: UserRole = Field(UserRole.USER, description="角色")
    is_guide: bool = Field(False, description="是否为认证地陪")
    balance: int = Field(0, description="钱包余额（分）")
    status: UserStatus = Field(UserStatus.ACTIVE, description="账号状态")

    @property
    def balance_yuan(self) -> float:
        """余额（元）"""
        return self.balance / 100

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
