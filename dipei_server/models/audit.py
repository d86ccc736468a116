"""
审计日志枚举
"""

from enum import Enum


class AuditAction(str, Enum):
    """后台操作类型"""
    AUDIT_GUIDE = "audit_guide"
    AUDIT_WITHDRAW = "audit_withdraw"
    BAN_USER = "ban_user"
    UNBAN_USER = "unban_user"
    REFUND_ORDER = "refund_order"
    CREATE_CUSTOM_ORDER = "create_custom_order"
    UPDATE_CONFIG = "update_config"
    UPDATE_USER_ROLE = "update_user_role"
    UPDATE_ORDER_STATUS = "update_order_status"
    ASSIGN_GUIDES = "assign_guides"


class AuditTargetType(str, Enum):
    """操作对象类型"""
    GUIDE = "guide"
    WITHDRAWAL = "withdrawal"
    USER = "user"
    ORDER = "order"
    SYSTEM_CONFIG = "system_config"
