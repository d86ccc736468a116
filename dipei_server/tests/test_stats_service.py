"""
后台统计测试
"""

from datetime import date, datetime, time, timedelta

import pytest

from dipei_server.core.database import db_manager
from dipei_server.core.exceptions import ValidationError
from dipei_server.services.stats_service import resolve_date_range, stats_service


class TestDateRange:
    """统计时间范围解析"""

    def test_today(self):
        start, end = resolve_date_range("today", today=date(2024, 5, 15))
        assert start == datetime(2024, 5, 15)
        assert end == datetime.combine(date(2024, 5, 15), time.max)

    def test_week_starts_monday(self):
        start, _ = resolve_date_range("week", today=date(2024, 5, 15))  # 周三
        assert start == datetime(2024, 5, 13)

    def test_month_and_year(self):
        assert resolve_date_range("month", today=date(2024, 5, 15))[0] == datetime(2024, 5, 1)
        assert resolve_date_range("year", today=date(2024, 5, 15))[0] == datetime(2024, 1, 1)

    def test_all(self):
        assert resolve_date_range("all", today=date(2024, 5, 15))[0] == datetime(2020, 1, 1)

    def test_explicit_dates_override_range(self):
        start, end = resolve_date_range("today", date(2024, 1, 1), date(2024, 1, 31))
        assert start == datetime(2024, 1, 1)
        assert end.date() == date(2024, 1, 31)

    def test_invalid(self):
        with pytest.raises(ValidationError):
            resolve_date_range("decade")
        with pytest.raises(ValidationError):
            resolve_date_range("today", date(2024, 2, 1), date(2024, 1, 1))


class TestStats:
    """客服业绩与平台收支"""

    def test_cs_performance(self, factory, sample_user, sample_guide, cs_user):
        now = datetime.now()
        for amount in (30000, 50000):
            factory.order(sample_user["id"], sample_guide["id"], status="completed", amount=amount,
                          order_type="custom", creator_id=cs_user["id"], actual_end_time=now)
        # 未完成、非客服创建的订单不计入
        factory.order(sample_user["id"], sample_guide["id"], status="paid", order_type="custom",
                      creator_id=cs_user["id"])
        factory.order(sample_user["id"], sample_guide["id"], status="completed", actual_end_time=now)

        result = stats_service.cs_performance("today")

        assert result == [{"cs_id": cs_user["id"], "cs_name": "客服小李", "order_count": 2, "total_amount": 80000}]

    def test_platform_finance(self, factory, sample_user, sample_guide, admin_user):
        now = datetime.now()
        yesterday = now - timedelta(days=1)
        factory.order(sample_user["id"], sample_guide["id"], status="completed", amount=40000, actual_end_time=now)
        factory.order(sample_user["id"], sample_guide["id"], status="service_ended", amount=20000,
                      actual_end_time=yesterday)
        factory.order(sample_user["id"], sample_guide["id"], status="refunded", amount=99999, actual_end_time=now)
        db_manager.execute_query(
            "INSERT INTO withdrawals (user_id, amount, status, user_note, processed_at, created_at) "
            "VALUES (?, 5000, 'completed', '支付宝', ?, ?)",
            [sample_guide["id"], now, now],
        )
        db_manager.execute_query(
            "INSERT INTO withdrawals (user_id, amount, status, user_note, created_at) "
            "VALUES (?, 7000, 'pending', '支付宝', ?)",
            [sample_guide["id"], now],
        )

        result = stats_service.platform_finance("all")

        assert result["summary"] == {"total_income": 60000, "total_withdraw": 5000}
        assert result["chart"] == [
            {"date": yesterday.date().isoformat(), "income": 20000, "withdraw": 0},
            {"date": now.date().isoformat(), "income": 40000, "withdraw": 5000},
        ]

    def test_overview(self, factory, sample_user, sample_guide):
        factory.order(sample_user["id"], sample_guide["id"], status="paid")
        factory.guide(status="offline")

        overview = stats_service.dashboard_overview()

        assert overview["user_count"] == 3
        assert overview["guide_count"] == 2
        assert overview["online_guide_count"] == 1
        assert overview["orders_by_status"] == {"paid": 1}
        assert overview["pending_withdrawals"] == {"count": 0, "amount": 0}
