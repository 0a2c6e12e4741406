"""
Scheduler Service - Background scheduler lifecycle management
Handles starting, stopping, and configuring the APScheduler instance
"""
import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from habitcoach.core.config import settings
from habitcoach.utils.timezone import get_app_tz
from .jobs import sweep_setbacks

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def start_scheduler():
    """
    Start the background scheduler
    Runs the setback sweep daily at SETBACK_SWEEP_HOUR (application timezone)
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return

    scheduler = BackgroundScheduler(timezone=get_app_tz())

    scheduler.add_job(
        func=sweep_setbacks,
        trigger=CronTrigger(hour=settings.SETBACK_SWEEP_HOUR, minute=0, timezone=get_app_tz()),
        id='setback_sweep',
        name='Detect habit setbacks for all users',
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"Scheduler started - setback sweep daily at {settings.SETBACK_SWEEP_HOUR:02d}:00")


def stop_scheduler():
    """Stop the background scheduler"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown()
        scheduler = None
        logger.info("Scheduler stopped")
