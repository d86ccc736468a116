"""
钱包与提现相关枚举
"""

from enum import Enum


class WalletLogType(str, Enum):
    """钱包流水类型"""
    INCOME = "income"                        # 订单结算收入
    WITHDRAW_FREEZE = "withdraw_freeze"      # 提现冻结（扣减余额）
    WITHDRAW_UNFREEZE = "withdraw_unfreeze"  # 提现驳回（退回余额）
    WITHDRAW_SUCCESS = "withdraw_success"    # 提现完成（金额为0的标记）


class WithdrawalStatus(str, Enum):
    """提现单状态"""
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"
