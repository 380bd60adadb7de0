"""
APScheduler Configuration

Runs the weekly matching cycle on a cron schedule (default Monday 02:30).
"""
import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from tutormatch.services.weekly_cycle import get_weekly_cycle

load_dotenv()

logger = logging.getLogger(__name__)

MATCHING_SCHEDULER_ENABLED = os.getenv("MATCHING_SCHEDULER_ENABLED", "true").lower() == "true"
MATCHING_CRON_DAY_OF_WEEK = os.getenv("MATCHING_CRON_DAY_OF_WEEK", "mon")
MATCHING_CRON_HOUR = int(os.getenv("MATCHING_CRON_HOUR", "2"))
MATCHING_CRON_MINUTE = int(os.getenv("MATCHING_CRON_MINUTE", "30"))

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def run_weekly_matching():
    """
    Weekly job: regenerate recurring requests, then match the upcoming week.

    Errors are logged and swallowed so one failed week does not stop the scheduler.
    """
    logger.info("Starting scheduled weekly matching cycle")

    try:
        summary = await get_weekly_cycle().run()

        logger.info(
            f"Scheduled cycle for week {summary['target_week']}: "
            f"{summary['recurring_pairs_generated']} recurring pairs, "
            f"{summary['matches_created']} matches in {summary['duration_ms']:.2f}ms"
        )

        if summary['matches_created'] == 0:
            logger.warning(f"No matches created for week {summary['target_week']}")

    except Exception as e:
        logger.error(f"Weekly matching cycle failed: {e}", exc_info=True)


def configure_scheduler():
    """Register the weekly matching job."""
    scheduler.add_job(
        run_weekly_matching,
        trigger=CronTrigger(
            day_of_week=MATCHING_CRON_DAY_OF_WEEK,
            hour=MATCHING_CRON_HOUR,
            minute=MATCHING_CRON_MINUTE,
        ),
        id='weekly_matching',
        name='Weekly Tutor Matching',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    logger.info(
        f"Scheduler configured: weekly matching on {MATCHING_CRON_DAY_OF_WEEK} "
        f"at {MATCHING_CRON_HOUR:02d}:{MATCHING_CRON_MINUTE:02d}"
    )


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
