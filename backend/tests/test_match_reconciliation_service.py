"""
backend/tests/test_match_reconciliation_service.py

Purpose:
    Decision table of the reconciliation engine: create / protected skip /
    update / no-change skip, per-record failure isolation, ordering of the
    detail report and the guarantees around allow_sync.
"""

from __future__ import annotations

import sys

import pytest

sys.path.insert(0, "backend")

from app.models.football_match import DataSource
from app.models.sync import SelectiveSyncOptions, SkipReason, SyncDisposition, SyncOutcome
from app.services.match_reconciliation_service import MatchReconciliationService, compute_changes, should_update
from app.services.match_store import MatchStore
from app.services.remote_match_adapter import build_remote_match


def _raw(external_id: str, *, score: str = "0-0", status: str = "1", stats: dict | None = None) -> dict:
    raw = {
        "id": external_id,
        "sport_id": "1",
        "time": "1735725600",
        "time_status": status,
        "league": {"id": "94", "name": "England Premier League", "cc": "gb"},
        "home": {"id": "10", "name": "Arsenal"},
        "away": {"id": "11", "name": "Chelsea"},
        "ss": score,
    }
    if stats is not None:
        raw["stats"] = stats
    return raw


async def _seed(store: MatchStore, raw: dict, *, allow_sync: bool = True) -> dict:
    """Store a record as a previous full sync would have, then apply the flag."""
    engine = MatchReconciliationService(store)
    await engine.reconcile_batch([raw], data_source=DataSource.FULL_SYNC)
    doc = await store.find_by_external_id(raw["id"])
    if not allow_sync:
        doc = await store.set_allow_sync(doc["_id"], False, "locked by admin")
    return doc


@pytest.mark.asyncio
async def test_new_protected_and_changed_records_in_one_batch(fake_db):
    store = MatchStore()
    await _seed(store, _raw("B", score="0-0"), allow_sync=False)
    await _seed(store, _raw("C", score="0-0"))
    engine = MatchReconciliationService(store)

    outcome = await engine.reconcile_batch(
        [_raw("A"), _raw("B", score="3-3"), _raw("C", score="2-1")],
        data_source=DataSource.FULL_SYNC,
    )

    assert (outcome.created, outcome.updated, outcome.skipped, outcome.errors) == (1, 1, 1, 0)
    assert [(d.external_id, d.disposition) for d in outcome.details] == [
        ("A", SyncDisposition.CREATED),
        ("B", SyncDisposition.SKIPPED),
        ("C", SyncDisposition.UPDATED),
    ]
    assert outcome.details[1].message == "sync protection active"
    assert outcome.details[1].reason == SkipReason.SYNC_PROTECTION_ACTIVE
    assert (await store.find_by_external_id("C"))["current_score"] == "2-1"


@pytest.mark.asyncio
async def test_protected_record_is_left_untouched(fake_db):
    store = MatchStore()
    before = await _seed(store, _raw("B", score="1-0", stats={"goals": ["1", "0"]}), allow_sync=False)
    engine = MatchReconciliationService(store)

    await engine.reconcile_batch(
        [_raw("B", score="4-4", status="3", stats={"goals": ["4", "4"]})],
        data_source=DataSource.FULL_SYNC,
    )
    forced = SyncOutcome()
    await engine.reconcile_record(
        build_remote_match(_raw("B", score="5-5")),
        forced,
        data_source=DataSource.SELECTIVE_SYNC,
        options=SelectiveSyncOptions(force_overwrite=True),
    )

    after = await store.find_by_external_id("B")
    assert after == before
    assert forced.updated == 0
    assert forced.details[0].disposition == SyncDisposition.SKIPPED


@pytest.mark.asyncio
async def test_created_records_are_syncable_and_tagged(fake_db):
    store = MatchStore()
    engine = MatchReconciliationService(store)

    await engine.reconcile_batch([_raw("N")], data_source=DataSource.FULL_SYNC)

    doc = await store.find_by_external_id("N")
    assert doc["allow_sync"] is True
    assert doc["data_source"] == "full_sync"
    assert doc["last_synced_at"] is not None
    assert doc["league"] == {"external_id": "94", "name": "England Premier League", "country_code": "gb"}


@pytest.mark.asyncio
async def test_store_error_on_one_record_does_not_abort_batch(fake_db):
    store = MatchStore()
    fake_db.football_matches.fail_on_insert.add("3")
    engine = MatchReconciliationService(store)

    outcome = await engine.reconcile_batch(
        [_raw(str(i)) for i in range(1, 6)],
        data_source=DataSource.FULL_SYNC,
    )

    assert outcome.errors == 1
    assert outcome.created == 4
    assert [d.external_id for d in outcome.details] == ["1", "2", "3", "4", "5"]
    assert outcome.details[2].disposition == SyncDisposition.ERROR
    assert "simulated insert failure" in outcome.details[2].message
    assert await store.find_by_external_id("5") is not None


@pytest.mark.asyncio
async def test_invalid_remote_record_is_a_skip_not_an_error(fake_db):
    store = MatchStore()
    engine = MatchReconciliationService(store)
    bad = _raw("X")
    bad["home"] = None
    bad["away"] = None

    outcome = await engine.reconcile_batch([bad, {"foo": "bar"}, _raw("Y")], data_source=DataSource.FULL_SYNC)

    assert (outcome.created, outcome.skipped, outcome.errors) == (1, 2, 0)
    assert outcome.details[0].external_id == "X"
    assert outcome.details[0].reason == SkipReason.INVALID_REMOTE_RECORD
    assert outcome.details[1].reason == SkipReason.INVALID_REMOTE_RECORD


@pytest.mark.asyncio
async def test_second_identical_full_sync_changes_nothing(fake_db):
    store = MatchStore()
    engine = MatchReconciliationService(store)
    batch = [_raw("A", stats={"xg": ["1.2", "0.3"]}), _raw("B", score="1-1")]

    first = await engine.reconcile_batch(batch, data_source=DataSource.FULL_SYNC)
    writes_after_first = fake_db.football_matches.writes
    second = await engine.reconcile_batch(batch, data_source=DataSource.FULL_SYNC)

    assert first.created == 2
    assert (second.created, second.updated, second.skipped) == (0, 0, 2)
    assert all(d.reason == SkipReason.NO_MATERIAL_CHANGE for d in second.details)
    assert fake_db.football_matches.writes == writes_after_first


@pytest.mark.asyncio
async def test_remote_state_wins_and_absent_stats_are_preserved(fake_db):
    store = MatchStore()
    await _seed(store, _raw("A", status="0", stats={"xg": ["1.2", "0.3"]}))
    engine = MatchReconciliationService(store)

    outcome = await engine.reconcile_batch([_raw("A", status="1")], data_source=DataSource.FULL_SYNC)

    doc = await store.find_by_external_id("A")
    assert outcome.updated == 1
    assert doc["lifecycle_state"] == "in_play"
    assert doc["statistics"] == {"xg": ["1.2", "0.3"]}


@pytest.mark.asyncio
async def test_selective_without_force_needs_material_change(fake_db):
    store = MatchStore()
    await _seed(store, _raw("A", score="1-0", stats={"goals": ["1", "0"]}))
    engine = MatchReconciliationService(store)
    outcome = SyncOutcome()

    # Only the bookmaker id moved: no state/score change and stats are present.
    raw = _raw("A", score="1-0", stats={"goals": ["1", "0"]})
    raw["bet365_id"] = "777"
    await engine.reconcile_record(
        build_remote_match(raw),
        outcome,
        data_source=DataSource.SELECTIVE_SYNC,
        options=SelectiveSyncOptions(),
    )
    await engine.reconcile_record(
        build_remote_match(raw),
        outcome,
        data_source=DataSource.SELECTIVE_SYNC,
        options=SelectiveSyncOptions(force_overwrite=True),
    )

    assert [d.disposition for d in outcome.details] == [SyncDisposition.SKIPPED, SyncDisposition.UPDATED]
    assert outcome.details[0].reason == SkipReason.NO_MATERIAL_CHANGE
    doc = await store.find_by_external_id("A")
    assert doc["bookmaker_id"] == "777"
    assert doc["data_source"] == "selective_sync"


@pytest.mark.asyncio
async def test_stats_only_merges_statistics_and_timer_only(fake_db):
    store = MatchStore()
    await _seed(store, _raw("A", score="0-0"))
    engine = MatchReconciliationService(store)
    outcome = SyncOutcome()
    raw = _raw("A", score="2-0", status="3", stats={"goals": ["2", "0"]})
    raw["timer"] = {"tm": 90, "ts": 0, "tt": "0", "ta": 4, "md": 0}

    await engine.reconcile_record(
        build_remote_match(raw),
        outcome,
        data_source=DataSource.SELECTIVE_SYNC,
        options=SelectiveSyncOptions(stats_only=True),
    )

    doc = await store.find_by_external_id("A")
    assert outcome.updated == 1
    assert doc["statistics"] == {"goals": ["2", "0"]}
    assert doc["timer"]["minutes"] == 90
    assert doc["current_score"] == "0-0"
    assert doc["lifecycle_state"] == "in_play"


def test_compute_changes_ignores_fields_the_remote_lacks():
    remote = build_remote_match(_raw("A", score="1-0"))
    existing = {
        **remote.model_dump(mode="json"),
        "statistics": {"xg": ["1", "2"]},
        "current_score": "0-0",
    }

    assert compute_changes(existing, remote) == {"current_score": "1-0"}


def test_missing_xg_is_material_only_when_filling_gaps():
    existing = {"lifecycle_state": "finished", "current_score": "1-0", "statistics": {"goals": ["1", "0"]}}
    remote = build_remote_match(_raw("G", score="1-0", status="3", stats={"goals": ["1", "0"], "xg": ["1.2", "0.3"]}))
    complete = {**existing, "statistics": {"xg": ["1.0", "0.2"], "possession_rt": ["60", "40"]}}

    assert should_update(existing, remote) is False
    assert should_update(existing, remote, fill_gaps=True) is True
    assert should_update(complete, remote, fill_gaps=True) is False
