"""
backend/tests/test_sync_matches_cli.py

Purpose:
    Command-line wrapper: argument parsing and exit codes.
"""

import json
from types import SimpleNamespace
import sys

import pytest

sys.path.insert(0, "backend")

from app.providers.betsapi import RemoteFetchError
from tools import sync_matches


def test_parser_subcommands():
    parser = sync_matches.build_parser()

    full = parser.parse_args(["full", "--type", "ended", "--day", "20250101"])
    selective = parser.parse_args(["selective", "1", "2", "--force", "--stats-only"])
    resync = parser.parse_args(["resync", "--limit", "25"])

    assert (full.command, full.match_type, full.day) == ("full", "ended", "20250101")
    assert selective.external_ids == ["1", "2"]
    assert selective.force is True
    assert selective.stats_only is True
    assert resync.limit == 25
    with pytest.raises(SystemExit):
        parser.parse_args(["full", "--type", "someday"])


def test_main_prints_report(monkeypatch, capsys):
    async def _run(args):
        return {"created": 1, "updated": 0, "skipped": 0, "errors": 0, "details": []}

    monkeypatch.setattr(sync_matches, "run", _run)

    assert sync_matches.main(["full-all"]) == 0
    assert json.loads(capsys.readouterr().out)["created"] == 1


def test_main_exits_2_on_provider_failure(monkeypatch):
    async def _run(args):
        raise RemoteFetchError("provider down", state="upcoming", page=1)

    monkeypatch.setattr(sync_matches, "run", _run)

    assert sync_matches.main(["full", "--type", "upcoming"]) == 2


def test_main_exits_1_on_malformed_day(monkeypatch):
    import app.database as _db
    from app.providers.betsapi import betsapi_provider

    async def _noop(*_args, **_kwargs):
        return None

    async def _no_fetch(*_args, **_kwargs):
        raise AssertionError("must not fetch with a malformed day")

    monkeypatch.setattr(_db, "connect_db", _noop)
    monkeypatch.setattr(_db, "close_db", _noop)
    monkeypatch.setattr(_db, "db", SimpleNamespace(name="matchsync_test"), raising=False)
    monkeypatch.setattr(betsapi_provider, "aclose", _noop)
    monkeypatch.setattr(betsapi_provider, "fetch_by_state", _no_fetch)

    assert sync_matches.main(["full", "--type", "ended", "--day", "2025-01-01"]) == 1


def test_full_accepts_league_filter():
    args = sync_matches.build_parser().parse_args(["full", "--type", "upcoming", "--league", "94"])

    assert args.league_id == "94"
    assert sync_matches.build_parser().parse_args(["full", "--type", "upcoming"]).league_id is None
