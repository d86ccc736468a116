"""
钱包与提现测试
余额不变式：余额 = 所有流水金额之和
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from dipei_server.core.database import db_manager
from dipei_server.core.exceptions import BusinessRuleError, InsufficientBalanceError, ValidationError
from dipei_server.services.wallet_service import wallet_service
from dipei_server.services.withdraw_service import withdraw_service


def _balance(user_id):
    return db_manager.fetch_value("SELECT balance FROM users WHERE id = ?", [user_id])


def _seed_income(user_id, amount):
    """模拟结算入账：余额与流水同时写入"""
    db_manager.execute_query("UPDATE users SET balance = balance + ? WHERE id = ?", [amount, user_id])
    db_manager.execute_query(
        "INSERT INTO wallet_logs (user_id, type, amount, balance_after, remark, created_at) "
        "VALUES (?, 'income', ?, ?, '结算', ?)",
        [user_id, amount, _balance(user_id), datetime.now()],
    )


def _log_sum(user_id):
    return db_manager.fetch_value("SELECT COALESCE(SUM(amount), 0) FROM wallet_logs WHERE user_id = ?", [user_id])


class TestWalletService:
    """提现申请与审核"""

    def test_apply_freezes_balance(self, sample_guide):
        _seed_income(sample_guide["id"], 50000)

        result = wallet_service.apply_withdraw(sample_guide["id"], 20000, "支付宝 a@b.com")

        assert result["status"] == "pending"
        assert result["balance"] == 30000
        summary = wallet_service.get_summary(sample_guide["id"])
        assert summary == {"balance": 30000, "frozen_amount": 20000, "total_income": 50000}
        assert _log_sum(sample_guide["id"]) == _balance(sample_guide["id"])

    def test_insufficient_balance(self, sample_guide):
        _seed_income(sample_guide["id"], 1000)

        with pytest.raises(InsufficientBalanceError):
            wallet_service.apply_withdraw(sample_guide["id"], 1001, "支付宝")
        assert _balance(sample_guide["id"]) == 1000
        assert db_manager.fetch_value("SELECT COUNT(*) FROM withdrawals") == 0

    @pytest.mark.parametrize("amount,note", [(0, "支付宝"), (-5, "支付宝"), (100, "  "), (100, "x" * 256)])
    def test_invalid_withdraw_request(self, sample_guide, amount, note):
        _seed_income(sample_guide["id"], 1000)

        with pytest.raises(ValidationError):
            wallet_service.apply_withdraw(sample_guide["id"], amount, note)

    def test_reject_returns_balance(self, sample_guide, admin_user):
        _seed_income(sample_guide["id"], 50000)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 20000, "银行卡 6222")

        audited = withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", "账户信息有误",
                                                    admin_user["id"])

        assert audited["status"] == "rejected"
        assert _balance(sample_guide["id"]) == 50000
        assert _log_sum(sample_guide["id"]) == 50000
        types = [row["type"] for row in wallet_service.get_logs(sample_guide["id"])[0]]
        assert types == ["withdraw_unfreeze", "withdraw_freeze", "income"]

    def test_complete_keeps_balance_deducted(self, sample_guide, admin_user):
        _seed_income(sample_guide["id"], 50000)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 20000, "银行卡 6222")

        withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "completed", None, admin_user["id"])

        assert _balance(sample_guide["id"]) == 30000
        assert _log_sum(sample_guide["id"]) == 30000
        summary = wallet_service.get_summary(sample_guide["id"])
        assert summary["frozen_amount"] == 0

    def test_reject_requires_note(self, sample_guide, admin_user):
        _seed_income(sample_guide["id"], 500)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 500, "支付宝")

        with pytest.raises(ValidationError):
            withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", " ", admin_user["id"])

    def test_audit_only_once(self, sample_guide, admin_user):
        _seed_income(sample_guide["id"], 500)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 500, "支付宝")
        withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", "重复申请", admin_user["id"])

        with pytest.raises(BusinessRuleError) as exc_info:
            withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", "重复申请", admin_user["id"])
        assert exc_info.value.error_code == "WITHDRAWAL_ALREADY_PROCESSED"
        # 只退回一次
        assert _balance(sample_guide["id"]) == 500

    def test_concurrent_withdrawals_never_overdraw(self, sample_guide):
        _seed_income(sample_guide["id"], 30000)

        def apply():
            try:
                wallet_service.apply_withdraw(sample_guide["id"], 20000, "支付宝")
                return "ok"
            except InsufficientBalanceError:
                return "insufficient"

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = sorted(pool.map(lambda _: apply(), range(2)))

        assert results == ["insufficient", "ok"]
        assert _balance(sample_guide["id"]) == 10000
        assert _log_sum(sample_guide["id"]) == _balance(sample_guide["id"])
        assert db_manager.fetch_value("SELECT COUNT(*) FROM withdrawals") == 1

    def test_concurrent_audits_refund_once(self, sample_guide, admin_user):
        _seed_income(sample_guide["id"], 500)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 500, "支付宝")

        def audit():
            try:
                withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", "信息有误",
                                                  admin_user["id"])
                return "ok"
            except BusinessRuleError as e:
                return e.error_code

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = sorted(pool.map(lambda _: audit(), range(2)))

        assert results == ["WITHDRAWAL_ALREADY_PROCESSED", "ok"]
        assert _balance(sample_guide["id"]) == 500
        assert _log_sum(sample_guide["id"]) == 500

    def test_audit_conflict_after_stale_read(self, sample_guide, admin_user, monkeypatch):
        """预检查读到待审核，但条件更新时已被处理"""
        _seed_income(sample_guide["id"], 500)
        withdrawal = wallet_service.apply_withdraw(sample_guide["id"], 500, "支付宝")
        stale = dict(withdraw_service.get_withdrawal(withdrawal["withdrawal_id"]))
        withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "completed", None, admin_user["id"])
        monkeypatch.setattr(withdraw_service, "get_withdrawal", lambda withdrawal_id: stale)

        with pytest.raises(BusinessRuleError) as exc_info:
            withdraw_service.audit_withdrawal(withdrawal["withdrawal_id"], "rejected", "重复审核", admin_user["id"])

        assert exc_info.value.error_code == "WITHDRAWAL_ALREADY_PROCESSED"
        assert _balance(sample_guide["id"]) == 0
        assert _log_sum(sample_guide["id"]) == 0
        assert db_manager.fetch_value(
            "SELECT status FROM withdrawals WHERE id = ?", [withdrawal["withdrawal_id"]]
        ) == "completed"
        assert db_manager.fetch_value("SELECT COUNT(*) FROM audit_logs WHERE action = 'audit_withdraw'") == 1


class TestWalletAPI:
    """钱包接口"""

    def test_summary_and_logs(self, client, sample_guide, auth_headers):
        _seed_income(sample_guide["id"], 8000)
        headers = auth_headers(sample_guide)

        summary = client.get("/api/v1/wallet/summary", headers=headers)
        logs = client.get("/api/v1/wallet/logs", params={"page": 1, "limit": 10}, headers=headers)

        assert summary.json()["data"]["balance"] == 8000
        assert logs.json()["data"]["pagination"]["total"] == 1

    def test_withdraw_api_insufficient(self, client, sample_guide, auth_headers):
        response = client.post("/api/v1/wallet/withdraw", json={"amount": 100, "user_note": "支付宝"},
                               headers=auth_headers(sample_guide))

        assert response.status_code == 400
        assert response.json()["error_code"] == "INSUFFICIENT_BALANCE"

    def test_admin_audit_api(self, client, sample_guide, admin_user, cs_user, auth_headers):
        _seed_income(sample_guide["id"], 8000)
        applied = client.post("/api/v1/wallet/withdraw", json={"amount": 3000, "user_note": "支付宝"},
                              headers=auth_headers(sample_guide))
        withdrawal_id = applied.json()["data"]["withdrawal_id"]

        forbidden = client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/audit", json={"status": "completed"},
                                headers=auth_headers(cs_user))
        assert forbidden.status_code == 403

        listed = client.get("/api/v1/admin/withdrawals", params={"status": "pending"},
                            headers=auth_headers(admin_user))
        assert listed.json()["data"]["items"][0]["user_phone"] == sample_guide["phone"]

        done = client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/audit", json={"status": "completed"},
                           headers=auth_headers(admin_user))
        assert done.status_code == 200
        again = client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/audit",
                            json={"status": "rejected", "admin_note": "x"}, headers=auth_headers(admin_user))
        assert again.status_code == 409
