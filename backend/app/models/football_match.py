"""
backend/app/models/football_match.py

Purpose:
    Football match domain model shared by the sync engine, the local store and
    the API layer. RemoteMatch is the validated shape of one provider record;
    LocalMatch is the persisted record keyed by the provider external id and
    guarded by the administrator-owned ``allow_sync`` flag.

Dependencies:
    - pydantic
    - app.models.common.PyObjectId
    - app.utils
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from app.models.common import PyObjectId
from app.utils import as_utc


class LifecycleState(str, Enum):
    SCHEDULED = "scheduled"
    IN_PLAY = "in_play"
    HALFTIME = "halftime"
    FINISHED = "finished"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


# Provider ``time_status`` codes.
PROVIDER_TIME_STATUS: dict[str, LifecycleState] = {
    "0": LifecycleState.SCHEDULED,
    "1": LifecycleState.IN_PLAY,
    "2": LifecycleState.HALFTIME,
    "3": LifecycleState.FINISHED,
    "4": LifecycleState.POSTPONED,
    "5": LifecycleState.CANCELLED,
}
TIME_STATUS_BY_STATE: dict[LifecycleState, str] = {v: k for k, v in PROVIDER_TIME_STATUS.items()}


class MatchType(str, Enum):
    """Provider listing endpoints, one per lifecycle bucket."""

    UPCOMING = "upcoming"
    INPLAY = "inplay"
    ENDED = "ended"


MATCH_TYPE_STATES: dict[MatchType, tuple[LifecycleState, ...]] = {
    MatchType.UPCOMING: (LifecycleState.SCHEDULED,),
    MatchType.INPLAY: (LifecycleState.IN_PLAY, LifecycleState.HALFTIME),
    MatchType.ENDED: (LifecycleState.FINISHED, LifecycleState.POSTPONED, LifecycleState.CANCELLED),
}


class RecordStatus(str, Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    PERMANENTLY_DELETED = "permanently_deleted"


class DataSource(str, Enum):
    FULL_SYNC = "full_sync"
    SELECTIVE_SYNC = "selective_sync"
    INCOMPLETE_RESYNC = "incomplete_resync"
    ADMIN = "admin"


# Paired (home, away) statistics kept from the provider ``stats`` bag.
STAT_KEYS: tuple[str, ...] = (
    "attacks",
    "dangerous_attacks",
    "ball_safe",
    "passing_accuracy",
    "key_passes",
    "crosses",
    "crossing_accuracy",
    "possession_rt",
    "goalattempts",
    "on_target",
    "off_target",
    "shots_blocked",
    "saves",
    "goals",
    "xg",
    "corners",
    "corner_f",
    "corner_h",
    "yellowcards",
    "redcards",
    "yellowred_cards",
    "fouls",
    "offsides",
    "penalties",
    "injuries",
    "substitutions",
    "action_areas",
)


class LeagueRef(BaseModel):
    external_id: str
    name: str
    country_code: str | None = None


class TeamRef(BaseModel):
    external_id: str
    name: str
    image_id: str | None = None
    country_code: str | None = None


class PeriodScore(BaseModel):
    home: str
    away: str


class MatchTimer(BaseModel):
    minutes: int | None = None
    seconds: int | None = None
    timer_type: str | None = None
    added_time: int | None = None
    matchday: int | None = None


class RemoteMatch(BaseModel):
    """One provider match after boundary validation. Never persisted as-is."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    sport_id: str = "1"
    kickoff_time: int
    lifecycle_state: LifecycleState
    league: LeagueRef
    home: TeamRef | None = None
    away: TeamRef | None = None
    alt_home: TeamRef | None = None
    alt_away: TeamRef | None = None
    current_score: str | None = None
    score_breakdown: dict[str, PeriodScore] | None = None
    timer: MatchTimer | None = None
    statistics: dict[str, list[str]] | None = None
    bookmaker_id: str | None = None
    round: str | None = None


class LocalMatch(BaseModel):
    """Persisted football match document."""

    id: PyObjectId | None = Field(alias="_id", default=None)
    external_id: str | None = None
    sport_id: str = "1"
    kickoff_time: int
    lifecycle_state: LifecycleState
    league: LeagueRef
    home: TeamRef | None = None
    away: TeamRef | None = None
    alt_home: TeamRef | None = None
    alt_away: TeamRef | None = None
    current_score: str | None = None
    score_breakdown: dict[str, PeriodScore] | None = None
    timer: MatchTimer | None = None
    statistics: dict[str, list[str]] | None = None
    bookmaker_id: str | None = None
    round: str | None = None
    record_status: RecordStatus = RecordStatus.ACTIVE
    allow_sync: bool = True
    admin_note: str | None = None
    data_source: DataSource | None = None
    last_synced_at: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
        json_encoders={ObjectId: str},
    )


class MatchResponse(BaseModel):
    id: str
    external_id: str | None
    sport_id: str
    kickoff_time: int
    lifecycle_state: str
    league: dict[str, Any]
    home: dict[str, Any] | None = None
    away: dict[str, Any] | None = None
    alt_home: dict[str, Any] | None = None
    alt_away: dict[str, Any] | None = None
    current_score: str | None = None
    score_breakdown: dict[str, Any] | None = None
    timer: dict[str, Any] | None = None
    statistics: dict[str, list[str]] | None = None
    bookmaker_id: str | None = None
    round: str | None = None
    record_status: str
    allow_sync: bool
    admin_note: str | None = None
    data_source: str | None = None
    last_synced_at: datetime | None = None
    updated_at: datetime | None = None


def db_to_response(doc: dict) -> MatchResponse:
    return MatchResponse(
        id=str(doc["_id"]),
        external_id=doc.get("external_id"),
        sport_id=str(doc.get("sport_id") or "1"),
        kickoff_time=int(doc.get("kickoff_time") or 0),
        lifecycle_state=str(doc.get("lifecycle_state") or LifecycleState.SCHEDULED.value),
        league=doc.get("league") if isinstance(doc.get("league"), dict) else {},
        home=doc.get("home"),
        away=doc.get("away"),
        alt_home=doc.get("alt_home"),
        alt_away=doc.get("alt_away"),
        current_score=doc.get("current_score"),
        score_breakdown=doc.get("score_breakdown"),
        timer=doc.get("timer"),
        statistics=doc.get("statistics"),
        bookmaker_id=doc.get("bookmaker_id"),
        round=doc.get("round"),
        record_status=str(doc.get("record_status") or RecordStatus.ACTIVE.value),
        # Records written before the flag existed are syncable.
        allow_sync=doc.get("allow_sync") is not False,
        admin_note=doc.get("admin_note"),
        data_source=doc.get("data_source"),
        last_synced_at=as_utc(doc.get("last_synced_at")),
        updated_at=as_utc(doc.get("updated_at")),
    )
