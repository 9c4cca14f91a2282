"""Background job scheduler for the Google Sheets export."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session

from epass.core.config import settings
from epass.core.database import engine
from epass.integrations.sheets import export_attendees, get_sheets_exporter

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def sheets_export_job():
    """Background export job."""
    try:
        exporter = get_sheets_exporter()
        if exporter is None:
            logger.warning("Google Sheets not configured, skipping export")
            return
        with Session(engine) as session:
            stats = export_attendees(session, exporter)
            logger.info(f"Background export completed: {stats}")
    except Exception as e:
        logger.error(f"Background export failed: {e}")


def start_scheduler() -> bool:
    """Start the background scheduler. Returns False when the export is disabled."""
    interval = settings.sheets_sync_interval_minutes
    if interval <= 0 or not settings.sheets_configured:
        logger.info("Sheets export schedule disabled")
        return False

    scheduler.add_job(
        sheets_export_job,
        trigger=IntervalTrigger(minutes=interval),
        id="sheets_export",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started, exporting to Google Sheets every {interval} minutes")
    return True


def shutdown_scheduler():
    """Graceful shutdown."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
