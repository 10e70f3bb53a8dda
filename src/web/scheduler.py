import logging
from datetime import date
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.core.config import settings
from src.core.models import EnrichmentMode, ScoreTier
from src.discovery.localities import localities_for_day
from src.enrichment.orchestrator import BatchSelection
from src.workflow import Pipeline

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

_pipeline: Optional[Pipeline] = None


async def run_daily_discovery():
    """Discovery over today's shard of the target localities."""
    localities = localities_for_day(date.today().timetuple().tm_yday, settings.localities_per_run)
    logger.info(f"Running scheduled job: Discovery ({', '.join(localities)})")
    try:
        await _pipeline.discovery.discover(localities)
    except Exception as e:
        logger.error(f"Scheduled discovery failed: {e}", exc_info=True)


async def run_committee_tracking():
    """Poll committee decisions for complexes not checked in committee_stale_days."""
    logger.info("Running scheduled job: Committee Tracking")
    try:
        await _pipeline.committee.track_all(stale_only=True)
    except Exception as e:
        logger.error(f"Scheduled committee tracking failed: {e}", exc_info=True)


async def run_hot_enrichment():
    """Standard enrichment of stale hot-tier complexes."""
    logger.info("Running scheduled job: Hot Tier Enrichment")
    try:
        selection = BatchSelection(tier=ScoreTier.HOT.value, stale_days=settings.enrichment_stale_days)
        job_id = await _pipeline.orchestrator.start_batch(selection, EnrichmentMode.STANDARD)
        logger.info(f"Hot tier enrichment started as {job_id}")
    except Exception as e:
        logger.error(f"Scheduled enrichment failed: {e}", exc_info=True)


async def run_rescore():
    logger.info("Running scheduled job: Re-score")
    try:
        await _pipeline.scoring.rescore_all()
    except Exception as e:
        logger.error(f"Scheduled re-score failed: {e}", exc_info=True)


def start_scheduler(pipeline: Pipeline):
    """
    Initialize and start the scheduler against a wired pipeline.
    """
    global _pipeline
    _pipeline = pipeline

    # Daily: discovery shard (5:00 AM)
    scheduler.add_job(
        run_daily_discovery,
        CronTrigger(hour=5, minute=0),
        id='daily_discovery',
        replace_existing=True
    )

    # Daily: committee polling of stale complexes (6:00 AM)
    scheduler.add_job(
        run_committee_tracking,
        CronTrigger(hour=6, minute=0),
        id='committee_tracking',
        replace_existing=True
    )

    # Daily: hot tier enrichment (7:00 AM)
    scheduler.add_job(
        run_hot_enrichment,
        CronTrigger(hour=7, minute=0),
        id='hot_enrichment',
        replace_existing=True
    )

    # Daily: full re-score, picks up listing and certainty changes (23:30)
    scheduler.add_job(
        run_rescore,
        CronTrigger(hour=23, minute=30),
        id='daily_rescore',
        replace_existing=True
    )

    scheduler.start()
    logger.info("APScheduler started. Discovery 5am, Committee 6am, Hot enrichment 7am, Re-score 23:30.")


async def stop_scheduler():
    """
    Shutdown the scheduler.
    """
    logger.info("Stopping APScheduler...")
    if scheduler.running:
        scheduler.shutdown()
