"""
backend/app/workers/match_sync_worker.py

Purpose:
    Scheduled entry points for automatic match syncs: the daily bundle
    (upcoming today/tomorrow, ended today) and the in-play snapshot. Both
    skip a run that already happened inside the interval window and never
    raise into the scheduler.

Dependencies:
    - app.services.match_sync_service
    - app.workers._state
"""

import logging
from datetime import timedelta

from app.config import settings
from app.models.football_match import MatchType
from app.services.match_sync_service import match_sync_service
from app.workers._state import recently_synced, set_synced

logger = logging.getLogger("matchsync.sync_worker")

FULL_SYNC_WORKER_ID = "match_full_sync"
INPLAY_SYNC_WORKER_ID = "match_inplay_sync"

# Lets a run that fires a little early still count as due.
_WINDOW_SLACK = timedelta(seconds=30)


def _window(minutes: int) -> timedelta:
    return max(timedelta(minutes=minutes) - _WINDOW_SLACK, timedelta(0))


async def run_scheduled_full_sync() -> None:
    if await recently_synced(FULL_SYNC_WORKER_ID, _window(settings.SYNC_SCHEDULER_INTERVAL_MINUTES)):
        logger.debug("Scheduled full sync skipped: ran inside the current window")
        return
    try:
        outcome = await match_sync_service.full_sync_all()
    except Exception:
        logger.exception("Scheduled full sync failed")
        return
    summary = outcome.model_dump(exclude={"details"})
    await set_synced(FULL_SYNC_WORKER_ID, summary)
    logger.info("Scheduled full sync done: %s", summary)


async def run_scheduled_inplay_sync() -> None:
    if await recently_synced(INPLAY_SYNC_WORKER_ID, _window(settings.SYNC_INPLAY_INTERVAL_MINUTES)):
        return
    try:
        outcome = await match_sync_service.full_sync(MatchType.INPLAY)
    except Exception:
        logger.exception("Scheduled in-play sync failed")
        return
    summary = outcome.model_dump(exclude={"details"})
    await set_synced(INPLAY_SYNC_WORKER_ID, summary)
    logger.info("Scheduled in-play sync done: %s", summary)
