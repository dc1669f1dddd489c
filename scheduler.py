import logging
from datetime import date
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from database import session_scope
from periods import local_today
from services import mark_overdue_bills


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def run_job(self, source: str = "manual", today: Optional[date] = None) -> int:
        today = today or local_today()
        logger.info(f"scheduler_run: source={source} today={today.isoformat()}")
        with session_scope() as session:
            count = mark_overdue_bills(session, today)
        logger.info(f"scheduler_run: source={source} bills_marked_overdue={count}")
        return count

    def start(self) -> None:
        self.run_job("startup")

        trigger = CronTrigger(hour=0, minute=5)
        self.scheduler.add_job(
            self.run_job,
            trigger,
            args=["daily_00:05"],
            id="bills_overdue_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        trigger = IntervalTrigger(hours=1)
        self.scheduler.add_job(
            self.run_job,
            trigger,
            args=["hourly_safety_net"],
            id="bills_overdue_hourly",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 and hourly safety net")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
