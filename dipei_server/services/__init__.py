"""
Business logic services.
Contains service layer implementations for core business operations.
"""

from .auth_service import AuthService, auth_service
from .guide_service import GuideService, guide_service
from .order_service import OrderService, order_service
from .user_service import UserService, user_service
from .wallet_service import WalletService, wallet_service
from .withdraw_service import WithdrawService, withdraw_service

__all__ = [
    "AuthService",
    "GuideService",
    "OrderService",
    "UserService",
    "WalletService",
    "WithdrawService",
    "auth_service",
    "guide_service",
    "order_service",
    "user_service",
    "wallet_service",
    "withdraw_service",
]
