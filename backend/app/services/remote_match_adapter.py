"""
backend/app/services/remote_match_adapter.py

Purpose:
    Boundary validation for provider match payloads. Turns one raw BetsAPI
    event dict into a typed RemoteMatch, or raises InvalidRemoteRecord so the
    reconciliation engine can record a data-quality skip.

Dependencies:
    - pydantic
    - app.models.football_match
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from app.models.football_match import (
    PROVIDER_TIME_STATUS,
    STAT_KEYS,
    LeagueRef,
    MatchTimer,
    PeriodScore,
    RemoteMatch,
    TeamRef,
)


class InvalidRemoteRecord(ValueError):
    """A provider record that cannot be reconciled."""

    def __init__(self, external_id: str, reason: str):
        super().__init__(reason)
        self.external_id = external_id
        self.reason = reason


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _team(raw: Any, side: str, external_id: str) -> TeamRef | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise InvalidRemoteRecord(external_id, f"{side} is not an object")
    team_id = _text(raw.get("id"))
    name = _text(raw.get("name"))
    if not team_id or not name:
        raise InvalidRemoteRecord(external_id, f"{side} lacks id or name")
    return TeamRef(
        external_id=team_id,
        name=name,
        image_id=_text(raw.get("image_id")),
        country_code=_text(raw.get("cc")),
    )


def _league(raw: Any, external_id: str) -> LeagueRef:
    if not isinstance(raw, dict):
        raise InvalidRemoteRecord(external_id, "league missing")
    league_id = _text(raw.get("id"))
    name = _text(raw.get("name"))
    if not league_id or not name:
        raise InvalidRemoteRecord(external_id, "league lacks id or name")
    return LeagueRef(external_id=league_id, name=name, country_code=_text(raw.get("cc")))


def _scores(raw: Any, external_id: str) -> dict[str, PeriodScore] | None:
    if raw is None or raw == []:
        return None
    if not isinstance(raw, dict):
        raise InvalidRemoteRecord(external_id, "scores is not an object")
    breakdown: dict[str, PeriodScore] = {}
    for period, value in raw.items():
        if not isinstance(value, dict):
            raise InvalidRemoteRecord(external_id, f"score period {period} is not an object")
        breakdown[str(period)] = PeriodScore(
            home=str(value.get("home", "")),
            away=str(value.get("away", "")),
        )
    return breakdown or None


def _timer(raw: Any) -> MatchTimer | None:
    if not isinstance(raw, dict) or not raw:
        return None
    return MatchTimer(
        minutes=_int_or_none(raw.get("tm")),
        seconds=_int_or_none(raw.get("ts")),
        timer_type=_text(raw.get("tt")),
        added_time=_int_or_none(raw.get("ta")),
        matchday=_int_or_none(raw.get("md")),
    )


def _statistics(raw: Any, external_id: str) -> dict[str, list[str]] | None:
    if raw is None or raw == []:
        return None
    if not isinstance(raw, dict):
        raise InvalidRemoteRecord(external_id, "stats is not an object")
    stats: dict[str, list[str]] = {}
    for key in STAT_KEYS:
        if key not in raw or raw[key] is None:
            continue
        pair = raw[key]
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise InvalidRemoteRecord(external_id, f"stat {key} is not a (home, away) pair")
        stats[key] = ["" if v is None else str(v) for v in pair]
    return stats or None


def build_remote_match(raw: dict[str, Any]) -> RemoteMatch:
    """Validate and normalize one provider event.

    A record needs an id, a kickoff time, a known ``time_status``, a league
    and at least one of home/away. Statistics pairs are copied as strings;
    absent pairs stay absent.
    """
    if not isinstance(raw, dict):
        raise InvalidRemoteRecord("", "record is not an object")
    external_id = _text(raw.get("id")) or ""
    if not external_id:
        raise InvalidRemoteRecord("", "missing external id")

    home = _team(raw.get("home"), "home", external_id)
    away = _team(raw.get("away"), "away", external_id)
    if home is None and away is None:
        raise InvalidRemoteRecord(external_id, "missing both home and away")

    kickoff = _int_or_none(raw.get("time"))
    if kickoff is None:
        raise InvalidRemoteRecord(external_id, "missing kickoff time")

    status = _text(raw.get("time_status")) or ""
    state = PROVIDER_TIME_STATUS.get(status)
    if state is None:
        raise InvalidRemoteRecord(external_id, f"unknown time_status '{status}'")

    try:
        return RemoteMatch(
            external_id=external_id,
            sport_id=_text(raw.get("sport_id")) or "1",
            kickoff_time=kickoff,
            lifecycle_state=state,
            league=_league(raw.get("league"), external_id),
            home=home,
            away=away,
            alt_home=_team(raw.get("o_home"), "o_home", external_id),
            alt_away=_team(raw.get("o_away"), "o_away", external_id),
            current_score=_text(raw.get("ss")),
            score_breakdown=_scores(raw.get("scores"), external_id),
            timer=_timer(raw.get("timer")),
            statistics=_statistics(raw.get("stats"), external_id),
            bookmaker_id=_text(raw.get("bet365_id")),
            round=_text(raw.get("round")),
        )
    except ValidationError as exc:
        raise InvalidRemoteRecord(external_id, f"validation failed: {exc.error_count()} error(s)") from exc


def remote_external_id(raw: Any) -> str:
    """Best-effort id for report entries of records that failed validation."""
    if isinstance(raw, dict):
        return _text(raw.get("id")) or ""
    return ""
