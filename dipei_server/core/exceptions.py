"""
自定义异常类
提供更精确的错误处理和异常信息
"""

from typing import Any, Dict, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""
    default_code = "INTERNAL_ERROR"


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""
    default_code = "TOKEN_INVALID"


class AuthorizationError(BaseApplicationError):
    """授权相关异常"""
    default_code = "PERMISSION_DENIED"


class PermissionDeniedError(AuthorizationError):
    """权限拒绝错误"""
    pass


class UserBannedError(AuthorizationError):
    """账号已被封禁"""
    default_code = "USER_BANNED"


class ValidationError(BaseApplicationError):
    """数据验证异常"""
    default_code = "INVALID_PARAMS"


class BusinessLogicError(BaseApplicationError):
    """业务逻辑异常"""
    pass


class NotFoundError(BusinessLogicError):
    """资源不存在"""
    default_code = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """用户不存在异常"""
    default_code = "USER_NOT_FOUND"


class GuideNotFoundError(NotFoundError):
    """地陪不存在异常"""
    default_code = "GUIDE_NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """订单不存在异常"""
    default_code = "ORDER_NOT_FOUND"


class InsufficientBalanceError(BusinessLogicError):
    """余额不足异常"""
    default_code = "INSUFFICIENT_BALANCE"


class InvalidOrderStatusError(BusinessLogicError):
    """订单状态不允许该操作"""
    default_code = "INVALID_ORDER_STATUS"


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""
    default_code = "CONCURRENCY_CONFLICT"


class BusinessRuleError(BaseApplicationError):
    """业务规则错误"""
    default_code = "BUSINESS_RULE_VIOLATION"
