"""APScheduler setup for the periodic offline-queue sync / connectivity check."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from inbox_triage.config import TriageConfig
    from inbox_triage.session.controller import TriageController

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "triage-sync"


def create_sync_scheduler(
    controller: TriageController,
    config: TriageConfig,
) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that runs controller.sync_tick() on an interval.

    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    Overlapping ticks are skipped rather than queued.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        controller.sync_tick,
        "interval",
        seconds=config.sync_interval_seconds,
        id=SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    logger.info("Offline sync scheduled every %.0fs", config.sync_interval_seconds)
    return scheduler
