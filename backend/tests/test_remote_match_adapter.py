"""
backend/tests/test_remote_match_adapter.py

Purpose:
    Boundary validation of provider event payloads: field mapping into
    RemoteMatch and the data-quality rejections that become skips.
"""

from __future__ import annotations

import sys

import pytest

sys.path.insert(0, "backend")

from app.models.football_match import LifecycleState
from app.services.remote_match_adapter import InvalidRemoteRecord, build_remote_match


def _raw(**overrides) -> dict:
    raw = {
        "id": "9001",
        "sport_id": "1",
        "time": "1735725600",
        "time_status": "1",
        "league": {"id": "94", "name": "England Premier League", "cc": "gb"},
        "home": {"id": "10", "name": "Arsenal", "image_id": "2311", "cc": "gb"},
        "away": {"id": "11", "name": "Chelsea", "image_id": "2312", "cc": "gb"},
        "ss": "1-0",
        "scores": {"1": {"home": "1", "away": "0"}},
        "timer": {"tm": 34, "ts": 12, "tt": "1", "ta": 0, "md": 0},
        "stats": {
            "attacks": ["40", "31"],
            "possession_rt": ["58", "42"],
            "xg": ["0.91", "0.40"],
            "unknown_metric": ["1", "2"],
        },
        "bet365_id": "140001",
        "round": "20",
    }
    raw.update(overrides)
    return raw


def test_full_mapping_of_provider_fields():
    remote = build_remote_match(_raw())

    assert remote.external_id == "9001"
    assert remote.kickoff_time == 1735725600
    assert remote.lifecycle_state == LifecycleState.IN_PLAY
    assert remote.league.external_id == "94"
    assert remote.league.country_code == "gb"
    assert remote.home.name == "Arsenal"
    assert remote.home.image_id == "2311"
    assert remote.current_score == "1-0"
    assert remote.score_breakdown["1"].home == "1"
    assert remote.timer.minutes == 34
    assert remote.timer.timer_type == "1"
    assert remote.bookmaker_id == "140001"
    assert remote.round == "20"


def test_statistics_keep_known_pairs_and_preserve_absence():
    remote = build_remote_match(_raw())

    assert remote.statistics == {
        "attacks": ["40", "31"],
        "possession_rt": ["58", "42"],
        "xg": ["0.91", "0.40"],
    }
    assert "goals" not in remote.statistics


def test_numeric_stat_values_are_stored_as_strings():
    remote = build_remote_match(_raw(stats={"goals": [2, 1]}))
    assert remote.statistics == {"goals": ["2", "1"]}


def test_one_team_is_enough():
    remote = build_remote_match(_raw(away=None))
    assert remote.home is not None
    assert remote.away is None


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"id": ""}, "missing external id"),
        ({"home": None, "away": None}, "missing both home and away"),
        ({"time_status": "9"}, "unknown time_status"),
        ({"time": None}, "missing kickoff time"),
        ({"league": None}, "league missing"),
        ({"stats": {"attacks": ["40"]}}, "stat attacks"),
    ],
)
def test_invalid_records_raise(overrides, reason):
    with pytest.raises(InvalidRemoteRecord) as exc_info:
        build_remote_match(_raw(**overrides))
    assert reason in exc_info.value.reason


def test_empty_stats_and_timer_are_absent():
    remote = build_remote_match(_raw(stats=[], timer=None, scores=[]))
    assert remote.statistics is None
    assert remote.timer is None
    assert remote.score_breakdown is None
