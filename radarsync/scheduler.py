"""
Radar Sync - Background scheduler.

Reference images are fetched once at start-up; if that fails (or an image
is deleted later) this job fetches the missing ones on an interval.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from radarsync.constants import DEFAULT_REFERENCE_RETRY_MINUTES
from radarsync.sync import fetch_reference_images

logger = logging.getLogger(__name__)


def _reference_job(config_getter) -> None:
    """Scheduled job: fetch any missing reference images."""
    config = config_getter()
    try:
        if fetch_reference_images(config):
            logger.debug("Reference image check complete.")
    except OSError as exc:
        logger.error("Could not save reference images: %s", exc)


def start_scheduler(config_getter) -> BackgroundScheduler:
    """
    Create, configure, and start the background scheduler.

    Args:
        config_getter: Callable returning the current config dict, read on
            each run.

    Returns:
        The scheduler instance for graceful shutdown.
    """
    config = config_getter()
    interval_minutes = max(
        1,
        config["schedule"].get(
            "reference_retry_minutes", DEFAULT_REFERENCE_RETRY_MINUTES
        ),
    )

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        _reference_job,
        args=[config_getter],
        trigger=IntervalTrigger(minutes=interval_minutes),
        id="reference-images",
        name="Reference image retry",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started; reference image check every %d minute(s).",
        interval_minutes,
    )
    return scheduler
