"""
backend/tests/test_match_sync_worker.py

Purpose:
    Scheduled sync jobs: window guard, last-run bookkeeping and failure
    containment.
"""

from __future__ import annotations

import sys
from datetime import timedelta

import pytest

sys.path.insert(0, "backend")

from app.models.football_match import MatchType
from app.models.sync import SyncDisposition, SyncOutcome
from app.providers.betsapi import RemoteFetchError
from app.utils import utcnow
from app.workers import match_sync_worker as worker


def _outcome() -> SyncOutcome:
    outcome = SyncOutcome()
    outcome.record("1", SyncDisposition.CREATED, "created")
    return outcome


@pytest.mark.asyncio
async def test_full_sync_job_runs_once_per_window(fake_db, monkeypatch):
    calls = []

    async def _full_sync_all():
        calls.append(1)
        return _outcome()

    monkeypatch.setattr(worker.match_sync_service, "full_sync_all", _full_sync_all)

    await worker.run_scheduled_full_sync()
    await worker.run_scheduled_full_sync()

    assert len(calls) == 1
    state = await fake_db.worker_state.find_one({"_id": worker.FULL_SYNC_WORKER_ID})
    assert state["last_summary"] == {"created": 1, "updated": 0, "skipped": 0, "errors": 0}


@pytest.mark.asyncio
async def test_full_sync_job_runs_again_after_window(fake_db, monkeypatch):
    calls = []

    async def _full_sync_all():
        calls.append(1)
        return _outcome()

    monkeypatch.setattr(worker.match_sync_service, "full_sync_all", _full_sync_all)
    await fake_db.worker_state.update_one(
        {"_id": worker.FULL_SYNC_WORKER_ID},
        {"$set": {"synced_at": utcnow() - timedelta(days=1)}},
        upsert=True,
    )

    await worker.run_scheduled_full_sync()

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_inplay_job_failure_is_contained_and_not_stamped(fake_db, monkeypatch):
    seen = []

    async def _full_sync(match_type, day=None):
        seen.append(match_type)
        raise RemoteFetchError("provider down", state="inplay", page=1)

    monkeypatch.setattr(worker.match_sync_service, "full_sync", _full_sync)

    await worker.run_scheduled_inplay_sync()

    assert seen == [MatchType.INPLAY]
    assert await fake_db.worker_state.find_one({"_id": worker.INPLAY_SYNC_WORKER_ID}) is None
