"""
定时任务测试
"""

from datetime import datetime, timedelta

from dipei_server.config.settings import settings
from dipei_server.services import scheduler


class TestScheduler:

    def test_jobs_registered(self):
        jobs = {job.id: job for job in scheduler.create_scheduler().get_jobs()}

        assert set(jobs) == {"auto_cancel_unpaid_orders", "auto_settle_orders"}
        assert jobs["auto_cancel_unpaid_orders"].trigger.interval == timedelta(
            minutes=settings.auto_cancel_interval_minutes
        )

    def test_disabled_by_settings(self):
        assert scheduler.start_scheduler() is None

    def test_auto_cancel_job(self, factory, sample_user, sample_guide):
        factory.order(sample_user["id"], sample_guide["id"], created_at=datetime.now() - timedelta(hours=2))

        assert scheduler.auto_cancel_unpaid_orders() == 1

    def test_auto_settle_job(self, factory, sample_user, sample_guide):
        factory.order(sample_user["id"], sample_guide["id"], status="service_ended",
                      actual_end_time=datetime.now() - timedelta(days=2))

        assert scheduler.auto_settle_orders()["succeeded"] == 1

    def test_job_errors_are_logged_not_raised(self, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("db down")

        monkeypatch.setattr(scheduler.order_service, "cancel_expired_orders", boom)

        assert scheduler.auto_cancel_unpaid_orders() == 0
