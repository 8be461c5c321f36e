"""
Maintenance scheduler

Run with: python -m app.worker.scheduler
"""

import logging
from datetime import timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from app.worker.tasks import expire_subscriptions, lift_suspensions, reset_daily_counters

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    scheduler = BlockingScheduler(timezone=timezone.utc)
    scheduler.add_job(
        expire_subscriptions,
        CronTrigger(minute=5),
        id="expire_subscriptions",
        replace_existing=True,
    )
    scheduler.add_job(
        lift_suspensions,
        CronTrigger(minute=10),
        id="lift_suspensions",
        replace_existing=True,
    )
    scheduler.add_job(
        reset_daily_counters,
        CronTrigger(hour=0, minute=0),
        id="reset_daily_counters",
        replace_existing=True,
    )
    logger.info("Scheduler started. Hourly subscription/suspension sweeps, daily counter reset at 00:00 UTC.")
    scheduler.start()


if __name__ == "__main__":
    main()
