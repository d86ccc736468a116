"""
加时服务
服务进行中由下单用户发起加时，支付后累加到订单金额与时长
"""

import logging
from datetime import datetime
from typing import Any, Dict

from ..core.database import db_manager
from ..core.exceptions import (
    BusinessRuleError,
    ConcurrencyError,
    InvalidOrderStatusError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from ..models.order import OrderStatus, OvertimeStatus
from .payment_service import payment_service

logger = logging.getLogger(__name__)

MIN_OVERTIME_HOURS = 1
MAX_OVERTIME_HOURS = 8


class OvertimeService:
    """加时服务"""

    def __init__(self):
        self.db = db_manager

    def request_overtime(self, user_id: int, order_id: int, hours: int) -> Dict[str, Any]:
        """
        发起加时申请

        Args:
            user_id: 下单用户ID
            order_id: 订单ID
            hours: 加时小时数（1-8）

        Returns:
            dict: 待支付的加时记录
        """
        if hours < MIN_OVERTIME_HOURS or hours > MAX_OVERTIME_HOURS:
            raise ValidationError(f"加时时长需在{MIN_OVERTIME_HOURS}-{MAX_OVERTIME_HOURS}小时之间")

        order = self.db.fetch_one("SELECT * FROM orders WHERE id = ?", [order_id])
        if not order or order["user_id"] != user_id:
            raise OrderNotFoundError("订单不存在")
        if order["status"] != OrderStatus.IN_SERVICE.value:
            raise InvalidOrderStatusError("只有服务中的订单可以加时")
        if not order["price_per_hour"]:
            raise BusinessRuleError("订单缺少小时单价，无法加时")

        fee = hours * order["price_per_hour"]
        with self.db.transaction() as conn:
            overtime_id = conn.execute(
                """
                INSERT INTO overtime_records (order_id, user_id, hours, fee, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?) RETURNING id
                """,
                [order_id, user_id, hours, fee, OvertimeStatus.PENDING.value, datetime.now()],
            ).fetchone()[0]

        logger.info("Overtime %s requested on order %s: %sh fee=%s", overtime_id, order_id, hours, fee)
        return self.get_overtime(overtime_id)

    def pay_overtime(self, user_id: int, overtime_id: int) -> Dict[str, Any]:
        """
        支付加时费

        同一事务内：加时记录置为已支付，订单金额 += 加时费，
        总时长 += 加时小时数，预计结束时间顺延。
        """
        overtime = self.get_overtime(overtime_id)
        if overtime["user_id"] != user_id:
            raise NotFoundError("加时记录不存在")
        if overtime["status"] != OvertimeStatus.PENDING.value:
            raise BusinessRuleError("该加时记录已支付或已取消")

        order = self.db.fetch_one("SELECT * FROM orders WHERE id = ?", [overtime["order_id"]])
        if order["status"] != OrderStatus.IN_SERVICE.value:
            raise InvalidOrderStatusError("服务已结束，无法支付加时")

        with self.db.transaction() as conn:
            payment = payment_service.pay(conn, order, overtime["fee"], overtime_id=overtime_id)
            updated = conn.execute(
                "UPDATE overtime_records SET status = ?, paid_at = ? WHERE id = ? AND status = ? RETURNING id",
                [OvertimeStatus.PAID.value, payment["paid_at"], overtime_id, OvertimeStatus.PENDING.value],
            ).fetchone()
            if updated is None:
                raise ConcurrencyError("加时记录状态已变更")

            row = conn.execute(
                """
                UPDATE orders
                SET amount = amount + ?, total_duration = COALESCE(total_duration, 0) + ?,
                    service_end_time = service_end_time + to_hours(CAST(? AS BIGINT)), updated_at = ?
                WHERE id = ? AND status = ?
                RETURNING amount, total_duration, service_end_time
                """,
                [overtime["fee"], overtime["hours"], overtime["hours"], datetime.now(), order["id"],
                 OrderStatus.IN_SERVICE.value],
            ).fetchone()
            if row is None:
                raise ConcurrencyError("订单状态已变更，请刷新后重试")

        logger.info("Overtime %s paid, order %s amount now %s", overtime_id, order["id"], row[0])
        return {
            "overtime_id": overtime_id,
            "order_id": order["id"],
            "status": OvertimeStatus.PAID.value,
            "fee": overtime["fee"],
            "order_amount": row[0],
            "total_duration": row[1],
            "service_end_time": row[2],
            "transaction_id": payment["transaction_id"],
        }

    def get_overtime(self, overtime_id: int) -> Dict[str, Any]:
        overtime = self.db.fetch_one("SELECT * FROM overtime_records WHERE id = ?", [overtime_id])
        if not overtime:
            raise NotFoundError("加时记录不存在")
        return overtime


overtime_service = OvertimeService()
