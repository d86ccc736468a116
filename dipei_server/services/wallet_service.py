"""
钱包服务
地陪钱包余额、流水查询与提现申请

业务规则：
- 余额存储在 users.balance（分）
- 每次余额变动都写一条 wallet_logs，余额 = 流水金额之和
- 申请提现时立即扣减余额（冻结），扣减使用 balance >= amount 的乐观条件
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Tuple

from ..core.database import db_manager
from ..core.exceptions import InsufficientBalanceError, UserNotFoundError, ValidationError
from ..models.wallet import WalletLogType, WithdrawalStatus

logger = logging.getLogger(__name__)

MAX_USER_NOTE_LENGTH = 255


class WalletService:
    """钱包服务"""

    def __init__(self):
        self.db = db_manager

    def get_summary(self, user_id: int) -> Dict[str, Any]:
        """余额、冻结中金额（待审核提现之和）与累计收入"""
        balance = self.db.fetch_value("SELECT balance FROM users WHERE id = ?", [user_id])
        if balance is None:
            raise UserNotFoundError("用户不存在")

        frozen = self.db.fetch_value(
            "SELECT COALESCE(SUM(amount), 0) FROM withdrawals WHERE user_id = ? AND status = ?",
            [user_id, WithdrawalStatus.PENDING.value], 0,
        )
        total_income = self.db.fetch_value(
            "SELECT COALESCE(SUM(amount), 0) FROM wallet_logs WHERE user_id = ? AND type = ?",
            [user_id, WalletLogType.INCOME.value], 0,
        )
        return {
            "balance": int(balance),
            "frozen_amount": int(frozen),
            "total_income": int(total_income),
        }

    def get_logs(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[Dict[str, Any]], int]:
        """钱包流水，按时间倒序，关联订单号与提现审核备注"""
        total = self.db.fetch_value("SELECT COUNT(*) FROM wallet_logs WHERE user_id = ?", [user_id], 0)
        items = self.db.fetch_all(
            """
            SELECT l.id, l.type, l.amount, l.balance_after, l.order_id, l.withdrawal_id, l.remark, l.created_at,
                   o.order_number, w.admin_note, w.status AS withdrawal_status
            FROM wallet_logs l
            LEFT JOIN orders o ON l.order_id = o.id
            LEFT JOIN withdrawals w ON l.withdrawal_id = w.id
            WHERE l.user_id = ?
            ORDER BY l.created_at DESC, l.id DESC
            LIMIT ? OFFSET ?
            """,
            [user_id, limit, (page - 1) * limit],
        )
        return items, total

    def apply_withdraw(self, user_id: int, amount: int, user_note: str) -> Dict[str, Any]:
        """
        申请提现

        Args:
            user_id: 用户ID
            amount: 提现金额（分，正整数）
            user_note: 收款账户信息（1-255字）

        Returns:
            dict: 提现单信息与扣减后的余额

        Raises:
            InsufficientBalanceError: 余额不足（含并发扣减导致的不足）
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError("提现金额必须为正整数")
        user_note = (user_note or "").strip()
        if not user_note or len(user_note) > MAX_USER_NOTE_LENGTH:
            raise ValidationError("请填写收款账户信息（1-255字）")

        now = datetime.now()
        with self.db.transaction() as conn:
            row = conn.execute(
                """
                UPDATE users SET balance = balance - ?, updated_at = ?
                WHERE id = ? AND balance >= ?
                RETURNING balance
                """,
                [amount, now, user_id, amount],
            ).fetchone()
            if row is None:
                raise InsufficientBalanceError("余额不足")
            balance_after = row[0]

            withdrawal_id = conn.execute(
                """
                INSERT INTO withdrawals (user_id, amount, status, user_note, created_at)
                VALUES (?, ?, ?, ?, ?) RETURNING id
                """,
                [user_id, amount, WithdrawalStatus.PENDING.value, user_note, now],
            ).fetchone()[0]

            conn.execute(
                """
                INSERT INTO wallet_logs (user_id, type, amount, balance_after, withdrawal_id, remark, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [user_id, WalletLogType.WITHDRAW_FREEZE.value, -amount, balance_after, withdrawal_id,
                 "提现申请冻结", now],
            )

        logger.info("Withdrawal %s applied by user %s amount=%s", withdrawal_id, user_id, amount)
        return {
            "withdrawal_id": withdrawal_id,
            "amount": amount,
            "status": WithdrawalStatus.PENDING.value,
            "balance": balance_after,
        }


wallet_service = WalletService()
