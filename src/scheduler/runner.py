from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from src.config import get_settings
from src.scheduler.jobs import run_device_cleanup


def create_scheduler() -> BackgroundScheduler:
    settings = get_settings()
    timezone = ZoneInfo(settings.scheduler_timezone)
    scheduler = BackgroundScheduler(
        timezone=timezone,
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": settings.scheduler_misfire_grace_time,
        },
    )

    # 每日凌晨 4:00 清理過期裝置
    scheduler.add_job(
        run_device_cleanup,
        CronTrigger(hour=4, minute=0, timezone=timezone),
        id="device_cleanup",
        name="Cleanup Expired Devices",
    )

    logger.info("Scheduler configured with jobs")
    return scheduler


def start_scheduler() -> BackgroundScheduler:
    scheduler = create_scheduler()
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler
