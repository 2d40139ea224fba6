import logging
from apscheduler.schedulers.background import BackgroundScheduler

from app.core.config import settings
from app.workers.campaign.daily_worker import run_daily_cycle
from app.workers.snapshot.review_snapshot import run_review_snapshot

logger = logging.getLogger(__name__)
scheduler = BackgroundScheduler(timezone="UTC")


# ---------------------------------------------------------
# WRAPPERS: jobs must never take the scheduler down
# ---------------------------------------------------------
def daily_cycle_job():
    try:
        summary = run_daily_cycle()
        logger.info(f"✅ Scheduler: daily cycle done ({summary.sent} sent, {summary.failed} failed)")
    except Exception as e:
        logger.error(f"❌ Scheduler Error (Daily Cycle): {str(e)}")


def review_snapshot_job():
    try:
        run_review_snapshot()
    except Exception as e:
        logger.error(f"❌ Scheduler Error (Review Snapshot): {str(e)}")


# ---------------------------------------------------------
# SCHEDULER SETUP
# ---------------------------------------------------------
def start_scheduler():
    if scheduler.running:
        return

    # 1. Review + retention emails (once a day)
    scheduler.add_job(daily_cycle_job, "cron", hour=settings.DAILY_CYCLE_HOUR, minute=0, id="daily_cycle")

    # 2. Google review counts (once a day, off-peak)
    scheduler.add_job(review_snapshot_job, "cron", hour=settings.SNAPSHOT_HOUR, minute=0, id="review_snapshot")

    scheduler.start()
    logger.info("🚀 Background Scheduler Started.")
