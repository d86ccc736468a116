"""
后台统计服务
客服业绩、平台收支与概览数据
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import db_manager
from ..core.exceptions import ValidationError

STATS_EPOCH = datetime(2020, 1, 1)
RANGES = ("today", "week", "month", "year", "all")

# 服务完成时间：实际结束时间优先，其次预计结束时间
COMPLETION_TIME = "COALESCE(o.actual_end_time, o.service_end_time)"


def resolve_date_range(range_name: str = "today", start: Optional[date] = None,
                       end: Optional[date] = None, today: Optional[date] = None) -> Tuple[datetime, datetime]:
    """
    解析统计时间范围

    传入 start/end 时优先使用（按整天闭区间），否则按 range 计算，
    周从周一开始。
    """
    if start and end:
        if start > end:
            raise ValidationError("开始日期不能晚于结束日期")
        return datetime.combine(start, time.min), datetime.combine(end, time.max)

    if range_name not in RANGES:
        raise ValidationError(f"range 只能是 {', '.join(RANGES)}")

    today = today or date.today()
    if range_name == "week":
        first = today - timedelta(days=today.weekday())
    elif range_name == "month":
        first = today.replace(day=1)
    elif range_name == "year":
        first = today.replace(month=1, day=1)
    elif range_name == "all":
        first = STATS_EPOCH.date()
    else:
        first = today
    return datetime.combine(first, time.min), datetime.combine(today, time.max)


class StatsService:
    """统计服务"""

    def __init__(self):
        self.db = db_manager

    def cs_performance(self, range_name: str = "today", start: Optional[date] = None,
                       end: Optional[date] = None) -> List[Dict[str, Any]]:
        """客服业绩：代下单且已完成的定制单，按创建人汇总"""
        start_at, end_at = resolve_date_range(range_name, start, end)
        rows = self.db.fetch_all(
            f"""
            SELECT o.creator_id AS cs_id, u.nickname AS cs_name,
                   COUNT(o.id) AS order_count, COALESCE(SUM(o.amount), 0) AS total_amount
            FROM orders o
            LEFT JOIN users u ON o.creator_id = u.id
            WHERE o.order_type = 'custom'
              AND o.creator_id IS NOT NULL
              AND o.status = 'completed'
              AND {COMPLETION_TIME} BETWEEN ? AND ?
            GROUP BY o.creator_id, u.nickname
            ORDER BY total_amount DESC
            """,
            [start_at, end_at],
        )
        return [
            {
                "cs_id": row["cs_id"],
                "cs_name": row["cs_name"] or "Unknown",
                "order_count": int(row["order_count"]),
                "total_amount": int(row["total_amount"]),
            }
            for row in rows
        ]

    def platform_finance(self, range_name: str = "today", start: Optional[date] = None,
                         end: Optional[date] = None) -> Dict[str, Any]:
        """
        平台收支

        收入按服务完成时间统计已完成/服务结束订单金额（订单金额已含已支付加时费），
        支出按审核时间统计已完成的提现。
        """
        start_at, end_at = resolve_date_range(range_name, start, end)

        income_rows = self.db.fetch_all(
            f"""
            SELECT CAST({COMPLETION_TIME} AS DATE) AS day, SUM(o.amount) AS amount
            FROM orders o
            WHERE o.status IN ('completed', 'service_ended')
              AND {COMPLETION_TIME} BETWEEN ? AND ?
            GROUP BY day
            """,
            [start_at, end_at],
        )
        withdraw_rows = self.db.fetch_all(
            """
            SELECT CAST(processed_at AS DATE) AS day, SUM(amount) AS amount
            FROM withdrawals
            WHERE status = 'completed' AND processed_at BETWEEN ? AND ?
            GROUP BY day
            """,
            [start_at, end_at],
        )

        chart: Dict[str, Dict[str, int]] = {}
        for row in income_rows:
            chart.setdefault(row["day"].isoformat(), {"income": 0, "withdraw": 0})["income"] += int(row["amount"])
        for row in withdraw_rows:
            chart.setdefault(row["day"].isoformat(), {"income": 0, "withdraw": 0})["withdraw"] += int(row["amount"])

        return {
            "summary": {
                "total_income": sum(item["income"] for item in chart.values()),
                "total_withdraw": sum(item["withdraw"] for item in chart.values()),
            },
            "chart": [{"date": day, **chart[day]} for day in sorted(chart)],
            "range": {"start": start_at, "end": end_at},
        }

    def dashboard_overview(self) -> Dict[str, Any]:
        """后台首页概览"""
        status_rows = self.db.fetch_all("SELECT status, COUNT(*) AS cnt FROM orders GROUP BY status")
        pending = self.db.execute_one(
            "SELECT COUNT(*), COALESCE(SUM(amount), 0) FROM withdrawals WHERE status = 'pending'"
        )
        return {
            "user_count": self.db.fetch_value("SELECT COUNT(*) FROM users", default=0),
            "guide_count": self.db.fetch_value("SELECT COUNT(*) FROM users WHERE is_guide", default=0),
            "online_guide_count": self.db.fetch_value(
                "SELECT COUNT(*) FROM guides WHERE status = 'online'", default=0
            ),
            "orders_by_status": {row["status"]: int(row["cnt"]) for row in status_rows},
            "pending_withdrawals": {"count": int(pending[0]), "amount": int(pending[1])},
        }


stats_service = StatsService()
