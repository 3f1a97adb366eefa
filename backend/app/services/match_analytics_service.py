"""
backend/app/services/match_analytics_service.py

Purpose:
    Read-only derived views over stored matches: data completeness, per-match
    quality and dominance, detailed stat breakdowns, quality and stat-type
    listings, the sync-needed check and the DB-first listing used by the
    public read API.

    Statistic pairs are parsed leniently here (absent or non-numeric values
    count as 0); the reconciliation merge keeps absence as absence.

Dependencies:
    - app.services.match_store
    - app.config
"""

from __future__ import annotations

import logging
import math
from typing import Any

from app.config import settings
from app.models.football_match import MATCH_TYPE_STATES, TIME_STATUS_BY_STATE, LifecycleState, MatchType
from app.models.sync import (
    CompletenessMissing,
    CompletenessReport,
    DominanceScores,
    QualityAssessment,
    QualityMetrics,
    StoredMatchPage,
    SyncCheckReport,
)
from app.services.match_store import MatchStore, match_store
from app.utils import day_bounds_epoch

logger = logging.getLogger("matchsync.analytics")

STAT_TYPES = ("xg", "possession", "shots", "cards")
COMPLETENESS_TARGET = 80


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def stat_value(stats: dict[str, Any] | None, key: str, side: int) -> int:
    """One side of a stat pair as int; 0 when absent or unparseable."""
    if not stats:
        return 0
    pair = stats.get(key)
    if not isinstance(pair, (list, tuple)) or len(pair) <= side:
        return 0
    try:
        return int(float(pair[side]))
    except (TypeError, ValueError):
        return 0


def _total(stats: dict[str, Any], key: str) -> int:
    return stat_value(stats, key, 0) + stat_value(stats, key, 1)


def _raw_side(stats: dict[str, Any], key: str, side: int) -> str:
    pair = stats.get(key)
    if isinstance(pair, (list, tuple)) and len(pair) > side and pair[side] not in (None, ""):
        return str(pair[side])
    return "0"


def _share(value: int, opponent: int) -> float:
    total = value + opponent
    if total <= 0:
        return 0.0
    return value / total * 100


def dominance_score(stats: dict[str, Any] | None, side: str) -> int:
    """0-100 control estimate for ``home`` or ``away``.

    possession x 0.4 + attacks share x 0.3 + dangerous attacks share x 0.2
    + shots on target share x 0.1; a share is 0 when both sides are 0.
    """
    me, them = (0, 1) if side == "home" else (1, 0)
    stats = stats or {}
    score = stat_value(stats, "possession_rt", me) * 0.4
    score += _share(stat_value(stats, "attacks", me), stat_value(stats, "attacks", them)) * 0.3
    score += _share(stat_value(stats, "dangerous_attacks", me), stat_value(stats, "dangerous_attacks", them)) * 0.2
    score += _share(stat_value(stats, "on_target", me), stat_value(stats, "on_target", them)) * 0.1
    return round_half_up(score)


def quality_bucket(score: float) -> tuple[str, str]:
    if score >= 80:
        return "excellent", "Very exciting match"
    if score >= 60:
        return "good", "Good match"
    if score >= 40:
        return "average", "Average match"
    return "poor", "Dull match"


def assess_quality(stats: dict[str, Any] | None) -> QualityAssessment:
    if not stats:
        return QualityAssessment(quality="unknown", description="No statistics available")

    metrics = QualityMetrics(
        total_goals=_total(stats, "goals"),
        total_shots=_total(stats, "goalattempts"),
        total_on_target=_total(stats, "on_target"),
        total_dangerous_attacks=_total(stats, "dangerous_attacks"),
    )
    score = (
        min(metrics.total_goals * 5, 25)
        + min(metrics.total_shots * 1.5, 25)
        + min(metrics.total_on_target * 3, 25)
        + min(metrics.total_dangerous_attacks * 0.5, 25)
    )
    score = max(0.0, min(float(score), 100.0))
    quality, description = quality_bucket(score)
    return QualityAssessment(quality=quality, score=round_half_up(score), description=description, metrics=metrics)


def _shot_accuracy(stats: dict[str, Any], side: int) -> str:
    attempts = stat_value(stats, "goalattempts", side)
    if attempts <= 0:
        return "0%"
    return f"{stat_value(stats, 'on_target', side) / attempts * 100:.1f}%"


def detailed_stats(stats: dict[str, Any] | None) -> dict[str, Any] | None:
    """Per-side breakdown for the match detail view; None without statistics."""
    if not stats:
        return None

    def _shots(side: int) -> dict[str, str]:
        return {
            "total": _raw_side(stats, "goalattempts", side),
            "on_target": _raw_side(stats, "on_target", side),
            "off_target": _raw_side(stats, "off_target", side),
            "accuracy": _shot_accuracy(stats, side),
        }

    def _cards(side: int) -> dict[str, str]:
        return {"yellow": _raw_side(stats, "yellowcards", side), "red": _raw_side(stats, "redcards", side)}

    return {
        "possession": {"home": _raw_side(stats, "possession_rt", 0), "away": _raw_side(stats, "possession_rt", 1)},
        "shots": {"home": _shots(0), "away": _shots(1)},
        "xg": {"home": _raw_side(stats, "xg", 0), "away": _raw_side(stats, "xg", 1)},
        "cards": {"home": _cards(0), "away": _cards(1)},
        "performance": DominanceScores(
            home=dominance_score(stats, "home"),
            away=dominance_score(stats, "away"),
        ).model_dump(),
    }


def _has_pair(stats: dict[str, Any], key: str) -> bool:
    pair = stats.get(key)
    return isinstance(pair, (list, tuple)) and len(pair) == 2 and bool(pair[0]) and bool(pair[1])


def has_stat_type(stats: dict[str, Any] | None, stat_type: str) -> bool:
    if not stats:
        return False
    if stat_type == "xg":
        return _has_pair(stats, "xg")
    if stat_type == "possession":
        return _has_pair(stats, "possession_rt")
    if stat_type == "shots":
        return _has_pair(stats, "goalattempts")
    if stat_type == "cards":
        return bool(stats.get("yellowcards") or stats.get("redcards"))
    raise ValueError(f"Unknown stat type '{stat_type}'. Expected one of {', '.join(STAT_TYPES)}.")


def completeness_report(docs: list[dict[str, Any]]) -> CompletenessReport:
    total = len(docs)
    missing = CompletenessMissing()
    with_stats = with_xg = with_possession = with_timer = with_alt = 0
    for doc in docs:
        stats = doc.get("statistics")
        if stats:
            with_stats += 1
            if stats.get("xg"):
                with_xg += 1
            else:
                missing.xg += 1
            if stats.get("possession_rt"):
                with_possession += 1
            else:
                missing.possession_rt += 1
        else:
            missing.statistics += 1
            missing.xg += 1
            missing.possession_rt += 1
        if doc.get("timer"):
            with_timer += 1
        else:
            missing.timer += 1
        if doc.get("alt_home"):
            with_alt += 1
        else:
            missing.alt_home += 1
        if doc.get("alt_away"):
            with_alt += 1
        else:
            missing.alt_away += 1

    def _pct(count: int) -> float:
        return round(count / total * 100, 1) if total else 0.0

    overall = 0
    if total:
        overall = round_half_up((with_stats + with_xg + with_possession + with_timer) * 100 / (4 * total))

    return CompletenessReport(
        total_matches=total,
        with_statistics=with_stats,
        with_xg=with_xg,
        with_possession=with_possession,
        with_timer=with_timer,
        with_alt_teams=with_alt,
        statistics_pct=_pct(with_stats),
        xg_pct=_pct(with_xg),
        possession_pct=_pct(with_possession),
        timer_pct=_pct(with_timer),
        completeness_percentage=overall,
        missing_fields=missing,
    )


def to_remote_shape(doc: dict[str, Any]) -> dict[str, Any]:
    """Stored match rendered with provider field names for list consumers."""

    def _ref(value: Any) -> dict[str, Any] | None:
        if not isinstance(value, dict):
            return None
        out = {"id": value.get("external_id"), "name": value.get("name")}
        if value.get("image_id") is not None:
            out["image_id"] = value.get("image_id")
        if value.get("country_code") is not None:
            out["cc"] = value.get("country_code")
        return out

    timer = doc.get("timer") if isinstance(doc.get("timer"), dict) else None
    state = doc.get("lifecycle_state")
    try:
        time_status = TIME_STATUS_BY_STATE[LifecycleState(state)]
    except ValueError:
        time_status = None
    return {
        "_id": str(doc.get("_id")),
        "id": doc.get("external_id"),
        "sport_id": doc.get("sport_id"),
        "time": str(doc.get("kickoff_time") or ""),
        "time_status": time_status,
        "league": _ref(doc.get("league")),
        "home": _ref(doc.get("home")),
        "away": _ref(doc.get("away")),
        "o_home": _ref(doc.get("alt_home")),
        "o_away": _ref(doc.get("alt_away")),
        "ss": doc.get("current_score"),
        "scores": doc.get("score_breakdown"),
        "timer": (
            {
                "tm": timer.get("minutes"),
                "ts": timer.get("seconds"),
                "tt": timer.get("timer_type"),
                "ta": timer.get("added_time"),
                "md": timer.get("matchday"),
            }
            if timer
            else None
        ),
        "stats": doc.get("statistics"),
        "bet365_id": doc.get("bookmaker_id"),
        "round": doc.get("round"),
        "allow_sync": doc.get("allow_sync") is not False,
        "admin_note": doc.get("admin_note"),
    }


class MatchAnalyticsService:
    def __init__(self, store: MatchStore | None = None) -> None:
        self._store = store or match_store

    async def completeness(self) -> CompletenessReport:
        docs = await self._store.find_active(limit=int(settings.COMPLETENESS_SCAN_LIMIT))
        return completeness_report(docs)

    async def high_quality_matches(self, limit: int = 20) -> list[dict[str, Any]]:
        """Matches with 3+ goals or 20+ shots, scanning the 100 earliest."""
        docs = await self._store.find_active(limit=100)
        picked = []
        for doc in docs:
            stats = doc.get("statistics")
            if not stats:
                continue
            if _total(stats, "goals") >= 3 or _total(stats, "goalattempts") >= 20:
                picked.append(doc)
            if len(picked) >= limit:
                break
        return picked

    async def matches_with_stat(self, stat_type: str, limit: int = 50) -> list[dict[str, Any]]:
        if stat_type not in STAT_TYPES:
            raise ValueError(f"Unknown stat type '{stat_type}'. Expected one of {', '.join(STAT_TYPES)}.")
        docs = await self._store.find_active(limit=200)
        return [doc for doc in docs if has_stat_type(doc.get("statistics"), stat_type)][:limit]

    async def sync_check(self) -> SyncCheckReport:
        counts = await self._store.count_by_match_type()
        report = await self.completeness()
        sync_needed = counts.get("total", 0) == 0
        incomplete = report.completeness_percentage < COMPLETENESS_TARGET
        if sync_needed:
            recommendation = "No stored matches. Run a full sync to load data from the provider."
        elif incomplete:
            recommendation = (
                f"Data completeness is {report.completeness_percentage}%. "
                "Run a sync or an incomplete-data resync to fill the gaps."
            )
        elif counts.get(MatchType.UPCOMING.value, 0) == 0:
            recommendation = "No upcoming matches stored. Run a full sync to fetch the latest fixtures."
        else:
            recommendation = "Stored data is sufficient and complete."
        return SyncCheckReport(
            sync_needed=sync_needed,
            incomplete_data=incomplete,
            db_counts=counts,
            completeness=report.completeness_percentage,
            recommendation=recommendation,
        )

    async def list_stored_matches(
        self,
        match_type: MatchType | str,
        page: int = 1,
        day: str | None = None,
    ) -> StoredMatchPage:
        """DB-first listing in provider shape. ``inplay`` is unpaged."""
        match_type = MatchType(match_type)
        states = MATCH_TYPE_STATES[match_type]
        per_page = int(settings.STORED_MATCHES_PAGE_SIZE)
        page = max(1, int(page))

        if match_type == MatchType.INPLAY:
            docs = await self._store.find_by_lifecycle_state(states)
            return StoredMatchPage(
                results=[to_remote_shape(d) for d in docs],
                pager=None,
                total_matches=len(docs),
            )

        if day:
            start, end = day_bounds_epoch(day)
            day_docs = await self._store.find_by_time_range(start, end, states=states)
            total = len(day_docs)
            docs = day_docs[(page - 1) * per_page : page * per_page]
        else:
            total = await self._store.count_active(states)
            docs = await self._store.find_active(skip=(page - 1) * per_page, limit=per_page, states=states)

        return StoredMatchPage(
            results=[to_remote_shape(d) for d in docs],
            pager={"page": page, "per_page": per_page, "total": total},
            total_matches=total,
        )


match_analytics_service = MatchAnalyticsService()
