"""
定时任务
- 每5分钟取消超时未支付订单
- 每小时结算服务结束超过24小时的订单
"""

import logging
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from ..config.settings import settings
from .order_service import order_service

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def auto_cancel_unpaid_orders() -> int:
    """取消超时未支付订单"""
    try:
        count = order_service.cancel_expired_orders()
    except Exception:
        logger.exception("Auto-cancel job failed")
        return 0
    logger.debug("Auto-cancel job cancelled %d orders", count)
    return count


def auto_settle_orders() -> Dict[str, int]:
    """结算已结束服务的订单"""
    try:
        return order_service.settle_finished_orders()
    except Exception:
        logger.exception("Auto-settle job failed")
        return {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0}


def create_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        auto_cancel_unpaid_orders, "interval",
        minutes=settings.auto_cancel_interval_minutes,
        id="auto_cancel_unpaid_orders", replace_existing=True, max_instances=1, coalesce=True,
    )
    scheduler.add_job(
        auto_settle_orders, "interval",
        minutes=settings.auto_settle_interval_minutes,
        id="auto_settle_orders", replace_existing=True, max_instances=1, coalesce=True,
    )
    return scheduler


def start_scheduler() -> Optional[BackgroundScheduler]:
    """启动定时任务（配置关闭时不启动）"""
    global _scheduler
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled by settings")
        return None
    if _scheduler is None:
        _scheduler = create_scheduler()
        _scheduler.start()
        logger.info("Scheduler started")
    return _scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
