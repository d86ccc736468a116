"""
订单相关数据模型
包含订单状态机的状态枚举与合法流转表
"""

from typing import Dict, FrozenSet
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"                  # 待支付
    PAID = "paid"                        # 已支付（待接单/待指派）
    WAITING_SERVICE = "waiting_service"  # 待服务
    IN_SERVICE = "in_service"            # 服务中
    SERVICE_ENDED = "service_ended"      # 服务结束（待结算）
    COMPLETED = "completed"              # 已完成
    CANCELLED = "cancelled"              # 已取消
    REFUNDED = "refunded"                # 已退款


class OrderType(str, Enum):
    """订单类型枚举"""
    NORMAL = "normal"   # 普通预约
    CUSTOM = "custom"   # 定制单


class OvertimeStatus(str, Enum):
    """加时状态枚举"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class CheckInType(str, Enum):
    """打卡类型枚举"""
    START = "start"   # 开始服务
    END = "end"       # 结束服务


# 订单状态流转表：key 为当前状态，value 为允许到达的状态
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.WAITING_SERVICE, OrderStatus.REFUNDED}),
    OrderStatus.WAITING_SERVICE: frozenset({OrderStatus.IN_SERVICE, OrderStatus.REFUNDED}),
    OrderStatus.IN_SERVICE: frozenset({OrderStatus.SERVICE_ENDED, OrderStatus.REFUNDED}),
    OrderStatus.SERVICE_ENDED: frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# 用户可自助退款的状态（服务尚未开始）
USER_REFUNDABLE_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.WAITING_SERVICE})


def can_transition(current: str, target: str) -> bool:
    """判断订单能否从 current 流转到 target"""
    try:
        return OrderStatus(target) in ORDER_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


def is_terminal(status: str) -> bool:
    """是否为终态"""
    return not ORDER_TRANSITIONS[OrderStatus(status)]
