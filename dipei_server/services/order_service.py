"""
订单服务模块
提供订单生命周期的核心业务逻辑：下单、支付、指派、接单、打卡、退款、结算

主要功能：
- 普通预约单与定制单的创建（含客服代下单）
- 模拟微信支付
- 定制单候选地陪指派与用户选择
- 地陪开始/结束服务打卡
- 用户自助退款（超时扣除违约金）与后台退款
- 超时未支付自动取消、服务结束后自动结算到地陪钱包

业务规则：
- 所有状态变更都经过 ORDER_TRANSITIONS 校验
- 状态更新语句带 WHERE status = 原状态，并发修改只有一方成功
- 金额单位为分，结算收入向下取整
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional, Tuple

from ..config.settings import settings
from ..core.database import db_manager
from ..core.exceptions import (
    BusinessRuleError,
    ConcurrencyError,
    GuideNotFoundError,
    InvalidOrderStatusError,
    OrderNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
    ValidationError,
)
from ..models.audit import AuditAction, AuditTargetType
from ..models.order import (
    CheckInType,
    OrderStatus,
    OrderType,
    USER_REFUNDABLE_STATUSES,
    can_transition,
)
from ..models.user import STAFF_ROLES
from ..models.wallet import WalletLogType
from ..utils.validators import is_valid_phone
from .audit_service import audit_service
from .guide_service import guide_service
from .payment_service import generate_serial, payment_service

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5
MIN_CUSTOM_CONTENT_LENGTH = 10

STATUS_LABELS = {
    OrderStatus.PENDING.value: "待支付",
    OrderStatus.PAID.value: "已支付",
    OrderStatus.WAITING_SERVICE.value: "待服务",
    OrderStatus.IN_SERVICE.value: "服务中",
    OrderStatus.SERVICE_ENDED.value: "服务已结束",
    OrderStatus.COMPLETED.value: "已完成",
    OrderStatus.CANCELLED.value: "已取消",
    OrderStatus.REFUNDED.value: "已退款",
}


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间转换为本地无时区时间后入库"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def calculate_guide_income(amount: int, commission_rate: float) -> int:
    """地陪结算收入 = floor(订单金额 × (1 - 平台抽成))"""
    income = Decimal(amount) * (Decimal(1) - Decimal(str(commission_rate)))
    return int(income.to_integral_value(rounding=ROUND_FLOOR))


class OrderService:
    """订单服务类，封装所有订单相关的业务逻辑"""

    def __init__(self):
        self.db = db_manager

    # ---------------- 下单 ----------------

    def create_normal_order(
        self,
        user_id: int,
        guide_id: int,
        service_start_time: datetime,
        service_hours: int,
        service_address: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        创建普通预约单

        Args:
            user_id: 下单用户ID
            guide_id: 地陪用户ID
            service_start_time: 预约开始时间
            service_hours: 服务时长（小时）

        Returns:
            dict: 新建订单

        Raises:
            GuideNotFoundError: 地陪不存在或未上架
            BusinessRuleError: 预约自己或地陪未定价
        """
        if service_hours < 1 or service_hours > 24:
            raise ValidationError("服务时长需在1-24小时之间")
        if guide_id == user_id:
            raise BusinessRuleError("不能预约自己")

        guide = guide_service.get_bookable_guide(guide_id)
        amount = guide["real_price"] * service_hours
        start = to_local_naive(service_start_time)

        with self.db.transaction() as conn:
            order_id = self._insert_order(conn, {
                "order_type": OrderType.NORMAL.value,
                "user_id": user_id,
                "guide_id": guide_id,
                "amount": amount,
                "price_per_hour": guide["real_price"],
                "total_duration": service_hours,
                "service_start_time": start,
                "service_end_time": start + timedelta(hours=service_hours),
                "service_address": service_address,
                "city": guide["city"],
                "remark": remark,
            })

        logger.info("Normal order %s created by user %s for guide %s", order_id, user_id, guide_id)
        return self.get_order(order_id)

    def create_custom_order(
        self,
        user_id: int,
        service_date: date,
        city: str,
        content: str,
        budget: Optional[int] = None,
        requirements: Optional[str] = None,
    ) -> Dict[str, Any]:
        """创建定制单，先支付固定订金，由后台指派候选地陪"""
        if not content or len(content.strip()) < MIN_CUSTOM_CONTENT_LENGTH:
            raise ValidationError(f"需求描述至少{MIN_CUSTOM_CONTENT_LENGTH}个字")
        if not city:
            raise ValidationError("请选择城市")

        with self.db.transaction() as conn:
            order_id = self._insert_order(conn, {
                "order_type": OrderType.CUSTOM.value,
                "user_id": user_id,
                "amount": settings.custom_order_deposit_cents,
                "city": city,
                "content": content.strip(),
                "remark": requirements,
            })
            conn.execute(
                """
                INSERT INTO custom_requirements (order_id, service_date, city, content, budget, requirements)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [order_id, service_date, city, content.strip(), budget, requirements],
            )

        logger.info("Custom order %s created by user %s", order_id, user_id)
        return self.get_order(order_id)

    def staff_create_custom_order(
        self,
        operator_id: int,
        user_phone: str,
        guide_phone: str,
        price_per_hour: int,
        duration: int,
        service_start_time: datetime,
        service_address: str,
        content: str,
        requirements: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """客服/管理员代用户创建定制单，直接指定地陪与价格"""
        if not is_valid_phone(user_phone) or not is_valid_phone(guide_phone):
            raise ValidationError("手机号格式不正确")
        if price_per_hour <= 0 or duration <= 0:
            raise ValidationError("单价和时长必须大于0")

        user = self.db.fetch_one("SELECT id FROM users WHERE phone = ?", [user_phone])
        if not user:
            raise UserNotFoundError("下单用户不存在")
        guide = self.db.fetch_one(
            "SELECT g.user_id, g.city FROM guides g JOIN users u ON g.user_id = u.id WHERE u.phone = ?",
            [guide_phone],
        )
        if not guide:
            raise GuideNotFoundError("该手机号不是地陪")
        if guide["user_id"] == user["id"]:
            raise BusinessRuleError("下单用户与地陪不能是同一人")

        start = to_local_naive(service_start_time)
        amount = price_per_hour * duration
        with self.db.transaction() as conn:
            order_id = self._insert_order(conn, {
                "order_type": OrderType.CUSTOM.value,
                "user_id": user["id"],
                "guide_id": guide["user_id"],
                "creator_id": operator_id,
                "amount": amount,
                "price_per_hour": price_per_hour,
                "total_duration": duration,
                "service_start_time": start,
                "service_end_time": start + timedelta(hours=duration),
                "service_address": service_address,
                "city": guide["city"],
                "content": content,
                "remark": requirements,
            })
            audit_service.log(operator_id, AuditAction.CREATE_CUSTOM_ORDER, AuditTargetType.ORDER, order_id,
                              {"user_phone": user_phone, "guide_phone": guide_phone, "amount": amount},
                              ip_address)

        return self.get_order(order_id)

    def cancel_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """用户取消未支付订单"""
        order = self._get_owned_order(order_id, user_id)
        with self.db.transaction() as conn:
            self._transition(conn, order, OrderStatus.CANCELLED, {"cancelled_at": datetime.now()})
        return self.get_order(order_id)

    # ---------------- 支付 ----------------

    def pay_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        """
        支付订单（模拟微信支付）

        Raises:
            OrderNotFoundError: 订单不存在或不属于当前用户
            InvalidOrderStatusError: 订单不是待支付状态
        """
        order = self._get_owned_order(order_id, user_id)
        if order["status"] != OrderStatus.PENDING.value:
            raise InvalidOrderStatusError("订单状态不正确，无法支付")

        with self.db.transaction() as conn:
            payment = payment_service.pay(conn, order, order["amount"])
            self._transition(conn, order, OrderStatus.PAID, {"paid_at": payment["paid_at"]})

        return {
            "order_id": order_id,
            "status": OrderStatus.PAID.value,
            "transaction_id": payment["transaction_id"],
            "amount": order["amount"],
        }

    # ---------------- 指派与接单 ----------------

    def assign_candidates(self, order_id: int, guide_ids: List[int], operator_id: int,
                          ip_address: Optional[str] = None) -> List[Dict[str, Any]]:
        """后台为已支付的定制单指派候选地陪（最多5个）"""
        unique_ids = list(dict.fromkeys(guide_ids))
        if not unique_ids:
            raise ValidationError("请至少选择1个地陪")
        if len(unique_ids) > MAX_CANDIDATES:
            raise ValidationError(f"最多只能选择{MAX_CANDIDATES}个地陪")

        order = self._get_order_row(order_id)
        if order["order_type"] != OrderType.CUSTOM.value:
            raise BusinessRuleError("只有定制单需要指派地陪")
        if order["status"] != OrderStatus.PAID.value:
            raise InvalidOrderStatusError("订单未支付或已完成指派")

        placeholders = ", ".join(["?"] * len(unique_ids))
        found = self.db.fetch_all(f"SELECT user_id FROM guides WHERE user_id IN ({placeholders})", unique_ids)
        missing = set(unique_ids) - {row["user_id"] for row in found}
        if missing:
            raise GuideNotFoundError("部分地陪不存在", details={"missing": sorted(missing)})

        with self.db.transaction() as conn:
            conn.execute("DELETE FROM custom_order_candidates WHERE order_id = ?", [order_id])
            for guide_id in unique_ids:
                conn.execute(
                    "INSERT INTO custom_order_candidates (order_id, guide_id, is_selected) VALUES (?, ?, FALSE)",
                    [order_id, guide_id],
                )
            audit_service.log(operator_id, AuditAction.ASSIGN_GUIDES, AuditTargetType.ORDER, order_id,
                              {"guide_ids": unique_ids}, ip_address)

        return self.list_candidates(order_id)

    def list_candidates(self, order_id: int, user: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """查看候选地陪（订单所有者或后台人员）"""
        order = self._get_order_row(order_id)
        if user is not None:
            self._ensure_can_view(order, user)
        return self.db.fetch_all(
            """
            SELECT c.guide_id, c.is_selected, g.stage_name, g.city, g.real_price, g.intro, g.avatar_id
            FROM custom_order_candidates c
            JOIN guides g ON c.guide_id = g.user_id
            WHERE c.order_id = ?
            ORDER BY c.id
            """,
            [order_id],
        )

    def select_guide(self, user_id: int, order_id: int, guide_id: int) -> Dict[str, Any]:
        """用户从候选中选定地陪，订单进入待服务"""
        order = self._get_owned_order(order_id, user_id)
        candidate = self.db.fetch_one(
            "SELECT id FROM custom_order_candidates WHERE order_id = ? AND guide_id = ?",
            [order_id, guide_id],
        )
        if not candidate:
            raise BusinessRuleError("所选地陪不在候选列表中")

        guide = self.db.fetch_one("SELECT real_price FROM guides WHERE user_id = ?", [guide_id])
        with self.db.transaction() as conn:
            self._transition(conn, order, OrderStatus.WAITING_SERVICE, {
                "guide_id": guide_id,
                "price_per_hour": guide["real_price"] if guide else None,
            })
            conn.execute("UPDATE custom_order_candidates SET is_selected = (guide_id = ?) WHERE order_id = ?",
                         [guide_id, order_id])

        return self.get_order(order_id)

    def accept_order(self, guide_id: int, order_id: int) -> Dict[str, Any]:
        """指定地陪接单：已支付 -> 待服务"""
        order = self._get_order_row(order_id)
        if order["guide_id"] != guide_id:
            raise PermissionDeniedError("无权操作此订单")
        with self.db.transaction() as conn:
            self._transition(conn, order, OrderStatus.WAITING_SERVICE)
        return self.get_order(order_id)

    # ---------------- 打卡 ----------------

    def check_in(self, order_id: int, guide_id: int, check_type: str, attachment_id: int,
                 lat: float, lng: float) -> Dict[str, Any]:
        """
        地陪打卡

        start: 待服务 -> 服务中；end: 服务中 -> 服务结束。
        凭证照片必须是 check_in 用途的附件。
        """
        order = self._get_order_row(order_id)
        if order["guide_id"] != guide_id:
            raise PermissionDeniedError("无权操作此订单")

        check_type = CheckInType(check_type)
        if check_type == CheckInType.START:
            expected, target, time_field = OrderStatus.WAITING_SERVICE, OrderStatus.IN_SERVICE, "actual_start_time"
        else:
            expected, target, time_field = OrderStatus.IN_SERVICE, OrderStatus.SERVICE_ENDED, "actual_end_time"
        if order["status"] != expected.value:
            action = "开始服务" if check_type == CheckInType.START else "结束服务"
            raise InvalidOrderStatusError(f"当前订单状态为 {order['status']}，无法{action}")

        attachment = self.db.fetch_one("SELECT id, usage_type FROM attachments WHERE id = ?", [attachment_id])
        if not attachment:
            raise ValidationError("无效的凭证照片")
        if attachment["usage_type"] != "check_in":
            raise ValidationError("照片用途不符")

        now = datetime.now()
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO check_in_records (order_id, guide_id, type, attachment_id, latitude, longitude, checked_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [order_id, guide_id, check_type.value, attachment_id, lat, lng, now],
            )
            self._transition(conn, order, target, {time_field: now})

        return {
            "order_id": order_id,
            "previous_status": order["status"],
            "current_status": target.value,
            "check_in_time": now,
        }

    # ---------------- 退款 ----------------

    def request_refund(self, user_id: int, order_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        用户申请退款

        支付后免责时间内全额退款；超过后扣除违约金，退款金额不小于0。
        仅服务开始前可退。
        """
        now = now or datetime.now()
        order = self._get_owned_order(order_id, user_id)
        if order["status"] == OrderStatus.REFUNDED.value:
            raise BusinessRuleError("订单已退款", "ALREADY_REFUNDED")
        if OrderStatus(order["status"]) not in USER_REFUNDABLE_STATUSES:
            raise InvalidOrderStatusError("当前订单状态不支持退款")

        paid_at = order["paid_at"] or now
        within_free_window = now - paid_at <= timedelta(minutes=settings.refund_free_window_minutes)
        penalty = 0 if within_free_window else min(settings.refund_penalty_cents, order["amount"])
        refund_amount = max(0, order["amount"] - penalty)

        with self.db.transaction() as conn:
            self._insert_refund(conn, order_id, user_id, refund_amount, penalty, "用户申请退款", now)
            self._transition(conn, order, OrderStatus.REFUNDED, {"refund_amount": refund_amount})

        logger.info("Order %s refunded by user: amount=%s penalty=%s", order_id, refund_amount, penalty)
        return {
            "order_id": order_id,
            "status": OrderStatus.REFUNDED.value,
            "penalty_applied": penalty > 0,
            "penalty_amount": penalty,
            "refunded_amount": refund_amount,
        }

    def admin_refund(self, order_id: int, amount: int, reason: str, operator_id: int,
                     ip_address: Optional[str] = None) -> Dict[str, Any]:
        """后台退款（仅管理员），同一订单只能退款一次"""
        order = self._get_order_row(order_id)
        if order["status"] == OrderStatus.REFUNDED.value or order["refund_amount"] is not None:
            raise BusinessRuleError("订单已退款", "ALREADY_REFUNDED")
        if not can_transition(order["status"], OrderStatus.REFUNDED.value):
            raise InvalidOrderStatusError("当前订单状态不支持退款")
        if amount < 0 or amount > order["amount"]:
            raise ValidationError("退款金额不能超过订单金额")
        if not reason or not reason.strip():
            raise ValidationError("请填写退款原因")

        now = datetime.now()
        with self.db.transaction() as conn:
            self._insert_refund(conn, order_id, operator_id, amount, 0, reason.strip(), now)
            self._transition(conn, order, OrderStatus.REFUNDED, {"refund_amount": amount})
            audit_service.log(operator_id, AuditAction.REFUND_ORDER, AuditTargetType.ORDER, order_id,
                              {"amount": amount, "reason": reason.strip(), "from_status": order["status"]},
                              ip_address)

        return self.get_order(order_id)

    # ---------------- 查询 ----------------

    def get_order(self, order_id: int) -> Dict[str, Any]:
        order = self._get_order_row(order_id)
        order["status_label"] = STATUS_LABELS.get(order["status"])
        return order

    def get_order_detail(self, order_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        """订单详情（下单用户、服务地陪、后台人员可见）"""
        order = self.get_order(order_id)
        self._ensure_can_view(order, user)

        order["guide"] = None
        if order["guide_id"]:
            order["guide"] = self.db.fetch_one(
                "SELECT user_id AS id, stage_name, city, avatar_id FROM guides WHERE user_id = ?",
                [order["guide_id"]],
            )
        order["custom_requirement"] = self.db.fetch_one(
            "SELECT service_date, city, content, budget, requirements FROM custom_requirements WHERE order_id = ?",
            [order_id],
        )
        order["overtime_records"] = self.db.fetch_all(
            "SELECT id, hours, fee, status, paid_at, created_at FROM overtime_records WHERE order_id = ? ORDER BY id",
            [order_id],
        )
        order["check_in_records"] = self.db.fetch_all(
            """
            SELECT c.id, c.type, c.attachment_id, a.url AS photo_url, c.latitude, c.longitude, c.checked_at
            FROM check_in_records c LEFT JOIN attachments a ON c.attachment_id = a.id
            WHERE c.order_id = ? ORDER BY c.id
            """,
            [order_id],
        )
        return order

    def list_user_orders(self, user_id: int, as_guide: bool = False, status: Optional[str] = None,
                         page: int = 1, page_size: int = 20) -> Tuple[List[Dict[str, Any]], int]:
        """我的订单（作为下单用户或作为服务地陪）"""
        conditions = ["o.guide_id = ?" if as_guide else "o.user_id = ?"]
        params: List[Any] = [user_id]
        if status:
            conditions.append("o.status = ?")
            params.append(status)
        return self._query_orders(conditions, params, page, page_size)

    def admin_list_orders(self, status: Optional[str] = None, order_type: Optional[str] = None,
                          keyword: Optional[str] = None, page: int = 1,
                          page_size: int = 20) -> Tuple[List[Dict[str, Any]], int]:
        conditions: List[str] = []
        params: List[Any] = []
        if status:
            conditions.append("o.status = ?")
            params.append(status)
        if order_type:
            conditions.append("o.order_type = ?")
            params.append(order_type)
        if keyword:
            conditions.append("(o.order_number LIKE ? OR u.phone LIKE ? OR g.stage_name LIKE ?)")
            params.extend([f"%{keyword}%"] * 3)
        return self._query_orders(conditions, params, page, page_size)

    def admin_update_status(self, order_id: int, status: str, operator_id: int,
                            ip_address: Optional[str] = None) -> Dict[str, Any]:
        """后台强制流转订单状态，仍受状态流转表约束"""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError("无效的状态值")
        if target in (OrderStatus.PAID, OrderStatus.REFUNDED):
            raise BusinessRuleError("支付与退款需通过对应接口完成")

        order = self._get_order_row(order_id)
        extra: Dict[str, Any] = {}
        now = datetime.now()
        if target == OrderStatus.CANCELLED:
            extra["cancelled_at"] = now
        elif target == OrderStatus.IN_SERVICE:
            extra["actual_start_time"] = now
        elif target == OrderStatus.SERVICE_ENDED:
            extra["actual_end_time"] = now

        if target == OrderStatus.COMPLETED:
            # 完成必须走结算，保证地陪入账
            if not self._settle_one(order_id, now):
                raise InvalidOrderStatusError("订单状态已变更，结算失败")
        else:
            with self.db.transaction() as conn:
                self._transition(conn, order, target, extra)

        audit_service.log(operator_id, AuditAction.UPDATE_ORDER_STATUS, AuditTargetType.ORDER, order_id,
                          {"from": order["status"], "to": target.value}, ip_address)
        return self.get_order(order_id)

    # ---------------- 定时任务 ----------------

    def cancel_expired_orders(self, now: Optional[datetime] = None) -> int:
        """取消超时未支付订单，返回取消数量"""
        now = now or datetime.now()
        deadline = now - timedelta(minutes=settings.unpaid_order_timeout_minutes)
        with self.db.transaction() as conn:
            rows = conn.execute(
                """
                UPDATE orders SET status = 'cancelled', cancelled_at = ?, updated_at = ?
                WHERE status = 'pending' AND created_at < ?
                RETURNING id
                """,
                [now, now, deadline],
            ).fetchall()

        if rows:
            logger.info("Auto-cancelled %d unpaid orders: %s", len(rows), [r[0] for r in rows])
        return len(rows)

    def settle_finished_orders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        结算服务结束超过冷静期的订单

        每单独立事务，单笔失败不影响其他订单。

        Returns:
            dict: processed / succeeded / failed / skipped
        """
        now = now or datetime.now()
        deadline = now - timedelta(hours=settings.settle_delay_hours)
        candidates = self.db.fetch_all(
            """
            SELECT id FROM orders
            WHERE status = 'service_ended' AND actual_end_time < ?
            ORDER BY actual_end_time
            LIMIT ?
            """,
            [deadline, settings.settle_batch_size],
        )

        stats = {"processed": len(candidates), "succeeded": 0, "failed": 0, "skipped": 0}
        for row in candidates:
            try:
                if self._settle_one(row["id"], now):
                    stats["succeeded"] += 1
                else:
                    stats["skipped"] += 1
            except Exception:
                logger.exception("Failed to settle order %s", row["id"])
                stats["failed"] += 1

        if candidates:
            logger.info("Settlement run finished: %s", stats)
        return stats

    # ---------------- 内部方法 ----------------

    def _settle_one(self, order_id: int, now: datetime) -> bool:
        """结算单个订单，事务内复核状态；状态已变化返回 False"""
        with self.db.transaction() as conn:
            order = self.db.fetch_one("SELECT * FROM orders WHERE id = ?", [order_id])
            if not order or order["status"] != OrderStatus.SERVICE_ENDED.value:
                return False
            if not order["guide_id"]:
                raise BusinessRuleError(f"订单{order_id}没有服务地陪，无法结算")

            income = calculate_guide_income(order["amount"], settings.platform_commission_rate)
            self._transition(conn, order, OrderStatus.COMPLETED, {"completed_at": now})
            balance_after = conn.execute(
                "UPDATE users SET balance = balance + ?, updated_at = ? WHERE id = ? RETURNING balance",
                [income, now, order["guide_id"]],
            ).fetchone()
            if balance_after is None:
                raise UserNotFoundError(f"地陪账户{order['guide_id']}不存在")
            conn.execute(
                """
                INSERT INTO wallet_logs (user_id, type, amount, balance_after, order_id, remark, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [order["guide_id"], WalletLogType.INCOME.value, income, balance_after[0], order_id,
                 f"订单{order['order_number']}结算收入", now],
            )

        logger.info("Order %s settled: guide=%s income=%s", order_id, order["guide_id"], income)
        return True

    def _transition(self, conn, order: Dict[str, Any], target: OrderStatus,
                    extra: Optional[Dict[str, Any]] = None) -> None:
        """
        订单状态流转

        Raises:
            InvalidOrderStatusError: 流转表不允许
            ConcurrencyError: 状态已被其他请求修改
        """
        current = order["status"]
        if not can_transition(current, target.value):
            raise InvalidOrderStatusError(
                f"订单状态为{STATUS_LABELS.get(current, current)}，无法变更为{STATUS_LABELS[target.value]}",
                details={"from": current, "to": target.value},
            )

        fields = dict(extra or {})
        fields["status"] = target.value
        fields["updated_at"] = datetime.now()
        assignments = ", ".join(f"{key} = ?" for key in fields)
        row = conn.execute(
            f"UPDATE orders SET {assignments} WHERE id = ? AND status = ? RETURNING id",
            list(fields.values()) + [order["id"], current],
        ).fetchone()
        if row is None:
            raise ConcurrencyError("订单状态已变更，请刷新后重试")

        logger.info("Order %s: %s -> %s", order["id"], current, target.value)

    def _insert_order(self, conn, values: Dict[str, Any]) -> int:
        values = dict(values)
        values["order_number"] = generate_serial("ORD")
        values["status"] = OrderStatus.PENDING.value
        values["created_at"] = datetime.now()
        values["updated_at"] = values["created_at"]
        columns = ", ".join(values.keys())
        placeholders = ", ".join(["?"] * len(values))
        return conn.execute(
            f"INSERT INTO orders ({columns}) VALUES ({placeholders}) RETURNING id",
            list(values.values()),
        ).fetchone()[0]

    def _insert_refund(self, conn, order_id: int, operator_id: int, amount: int, penalty: int,
                       reason: str, now: datetime):
        conn.execute(
            """
            INSERT INTO refund_records (order_id, operator_id, amount, penalty, reason, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [order_id, operator_id, amount, penalty, reason, now],
        )

    def _get_order_row(self, order_id: int) -> Dict[str, Any]:
        order = self.db.fetch_one("SELECT * FROM orders WHERE id = ?", [order_id])
        if not order:
            raise OrderNotFoundError("订单不存在")
        return order

    def _get_owned_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        order = self._get_order_row(order_id)
        if order["user_id"] != user_id:
            raise OrderNotFoundError("订单不存在")
        return order

    def _ensure_can_view(self, order: Dict[str, Any], user: Dict[str, Any]):
        if user["role"] in STAFF_ROLES:
            return
        if user["id"] in (order["user_id"], order["guide_id"]):
            return
        raise PermissionDeniedError("无权查看此订单")

    def _query_orders(self, conditions: List[str], params: List[Any], page: int,
                      page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        from_clause = """
            FROM orders o
            JOIN users u ON o.user_id = u.id
            LEFT JOIN guides g ON o.guide_id = g.user_id
        """
        total = self.db.fetch_value(f"SELECT COUNT(*) {from_clause} {where_clause}", params, 0)
        items = self.db.fetch_all(
            f"""
            SELECT o.*, u.phone AS user_phone, u.nickname AS user_nickname, g.stage_name AS guide_name
            {from_clause}
            {where_clause}
            ORDER BY o.created_at DESC, o.id DESC
            LIMIT ? OFFSET ?
            """,
            params + [page_size, (page - 1) * page_size],
        )
        for item in items:
            item["status_label"] = STATUS_LABELS.get(item["status"])
        return items, total


order_service = OrderService()
