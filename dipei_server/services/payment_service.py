"""
支付服务
模拟微信支付：生成交易号并记录支付流水，不调用外部网关
"""

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits


def generate_serial(prefix: str) -> str:
    """生成 前缀 + 毫秒时间戳 + 6位随机大写字母数字 的流水号"""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


class MockWechatPayProvider:
    """模拟微信支付，直接返回成功"""

    method = "wechat"

    def charge(self, order_number: str, amount: int) -> Dict[str, Any]:
        transaction_id = generate_serial("TXN")
        logger.info("[MOCK PAY] order=%s amount=%s txn=%s", order_number, amount, transaction_id)
        return {"transaction_id": transaction_id, "status": "success", "paid_at": datetime.now()}


class PaymentService:
    """支付流水记录"""

    def __init__(self, provider: MockWechatPayProvider = None):
        self.provider = provider or MockWechatPayProvider()

    def pay(self, conn, order: Dict[str, Any], amount: int, overtime_id: Optional[int] = None) -> Dict[str, Any]:
        """
        在调用方事务内完成一次支付并写入 payments

        Returns:
            dict: transaction_id / paid_at
        """
        result = self.provider.charge(order["order_number"], amount)
        conn.execute(
            """
            INSERT INTO payments (order_id, overtime_id, payment_method, transaction_id, amount, status, paid_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [order["id"], overtime_id, self.provider.method, result["transaction_id"], amount,
             result["status"], result["paid_at"]],
        )
        return result


payment_service = PaymentService()
