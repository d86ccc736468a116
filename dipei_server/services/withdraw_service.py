"""
提现审核服务
后台提现单列表与审核（通过/驳回）

审核使用 WHERE status = 'pending' 的条件更新，
同一提现单被并发审核时只有一次生效，驳回时退回冻结金额。
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import db_manager
from ..core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from ..models.audit import AuditAction, AuditTargetType
from ..models.wallet import WalletLogType, WithdrawalStatus
from .audit_service import audit_service

logger = logging.getLogger(__name__)

AUDIT_RESULTS = (WithdrawalStatus.COMPLETED.value, WithdrawalStatus.REJECTED.value)


class WithdrawService:
    """提现审核服务"""

    def __init__(self):
        self.db = db_manager

    def list_withdrawals(
        self,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        conditions = []
        params: List[Any] = []
        if status:
            conditions.append("w.status = ?")
            params.append(status)
        if user_id:
            conditions.append("w.user_id = ?")
            params.append(user_id)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        total = self.db.fetch_value(f"SELECT COUNT(*) FROM withdrawals w {where_clause}", params, 0)
        items = self.db.fetch_all(
            f"""
            SELECT w.*, u.phone AS user_phone, u.nickname AS user_nickname
            FROM withdrawals w
            LEFT JOIN users u ON w.user_id = u.id
            {where_clause}
            ORDER BY w.created_at DESC, w.id DESC
            LIMIT ? OFFSET ?
            """,
            params + [page_size, (page - 1) * page_size],
        )
        return items, total

    def get_withdrawal(self, withdrawal_id: int) -> Dict[str, Any]:
        row = self.db.fetch_one("SELECT * FROM withdrawals WHERE id = ?", [withdrawal_id])
        if not row:
            raise NotFoundError("提现单不存在")
        return row

    def audit_withdrawal(
        self,
        withdrawal_id: int,
        status: str,
        admin_note: Optional[str],
        operator_id: int,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        审核提现单

        Args:
            withdrawal_id: 提现单ID
            status: completed（打款完成）或 rejected（驳回）
            admin_note: 审核备注，驳回时必填
            operator_id: 审核人ID

        Raises:
            BusinessRuleError: 提现单已被处理（WITHDRAWAL_ALREADY_PROCESSED）
        """
        if status not in AUDIT_RESULTS:
            raise ValidationError("审核结果只能是 completed 或 rejected")
        admin_note = (admin_note or "").strip() or None
        if status == WithdrawalStatus.REJECTED.value and not admin_note:
            raise ValidationError("驳回时必须填写原因")

        withdrawal = self.get_withdrawal(withdrawal_id)
        if withdrawal["status"] != WithdrawalStatus.PENDING.value:
            raise BusinessRuleError("该提现单已被处理或状态已变更", "WITHDRAWAL_ALREADY_PROCESSED")

        now = datetime.now()
        with self.db.transaction() as conn:
            updated = conn.execute(
                """
                UPDATE withdrawals
                SET status = ?, admin_note = ?, operator_id = ?, processed_at = ?
                WHERE id = ? AND status = 'pending'
                RETURNING id
                """,
                [status, admin_note, operator_id, now, withdrawal_id],
            ).fetchone()
            if updated is None:
                raise BusinessRuleError("该提现单已被处理或状态已变更", "WITHDRAWAL_ALREADY_PROCESSED")

            user_id, amount = withdrawal["user_id"], withdrawal["amount"]
            if status == WithdrawalStatus.COMPLETED.value:
                balance = conn.execute("SELECT balance FROM users WHERE id = ?", [user_id]).fetchone()[0]
                self._insert_log(conn, user_id, WalletLogType.WITHDRAW_SUCCESS, 0, balance,
                                 withdrawal_id, "提现打款成功", now)
            else:
                balance = conn.execute(
                    "UPDATE users SET balance = balance + ?, updated_at = ? WHERE id = ? RETURNING balance",
                    [amount, now, user_id],
                ).fetchone()[0]
                self._insert_log(conn, user_id, WalletLogType.WITHDRAW_UNFREEZE, amount, balance,
                                 withdrawal_id, f"提现驳回退回：{admin_note}", now)

            audit_service.log(operator_id, AuditAction.AUDIT_WITHDRAW, AuditTargetType.WITHDRAWAL,
                              withdrawal_id, {"status": status, "amount": amount, "admin_note": admin_note},
                              ip_address)

        logger.info("Withdrawal %s audited as %s by %s", withdrawal_id, status, operator_id)
        return self.get_withdrawal(withdrawal_id)

    def _insert_log(self, conn, user_id: int, log_type: WalletLogType, amount: int, balance_after: int,
                    withdrawal_id: int, remark: str, now: datetime):
        conn.execute(
            """
            INSERT INTO wallet_logs (user_id, type, amount, balance_after, withdrawal_id, remark, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [user_id, log_type.value, amount, balance_after, withdrawal_id, remark, now],
        )


withdraw_service = WithdrawService()
