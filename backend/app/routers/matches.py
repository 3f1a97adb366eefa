"""
backend/app/routers/matches.py

Purpose:
    Match read API for the app and admin panel. Serves stored matches
    DB-first (no provider calls) plus the derived analytics views:
    completeness, quality, dominance and detailed statistics.

Dependencies:
    - app.services.match_store
    - app.services.match_analytics_service
    - app.models.football_match
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, status

from app.models.football_match import MatchResponse, MatchType, db_to_response
from app.models.sync import CompletenessReport, DominanceScores, QualityAssessment, StoredMatchPage
from app.services.match_analytics_service import (
    STAT_TYPES,
    assess_quality,
    detailed_stats,
    dominance_score,
    match_analytics_service,
    to_remote_shape,
)
from app.services.match_store import MatchNotFoundError, match_store

logger = logging.getLogger("matchsync.matches")
router = APIRouter(prefix="/api/matches", tags=["matches"])


async def _load(match_id: str) -> dict:
    doc = await match_store.find_by_id(match_id)
    if doc is None:
        raise MatchNotFoundError(match_id)
    return doc


@router.get("/stored/{match_type}", response_model=StoredMatchPage)
async def list_stored_matches(
    match_type: MatchType,
    page: int = Query(1, ge=1),
    day: Optional[str] = Query(None, description="Provider calendar day, YYYYMMDD"),
):
    """Stored matches for one lifecycle bucket; ``inplay`` is unpaged."""
    try:
        return await match_analytics_service.list_stored_matches(match_type, page, day)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None


@router.get("/counts")
async def stored_counts():
    return await match_store.count_by_match_type()


@router.get("/completeness", response_model=CompletenessReport)
async def completeness():
    return await match_analytics_service.completeness()


@router.get("/high-quality")
async def high_quality_matches(limit: int = Query(20, ge=1, le=100)):
    docs = await match_analytics_service.high_quality_matches(limit)
    return {
        "results": [to_remote_shape(d) for d in docs],
        "criteria": "Matches with 3+ goals or 20+ shots",
        "count": len(docs),
    }


@router.get("/with-stats/{stat_type}")
async def matches_with_stat(
    stat_type: str = Path(..., description=f"One of {', '.join(STAT_TYPES)}"),
    limit: int = Query(50, ge=1, le=200),
):
    try:
        docs = await match_analytics_service.matches_with_stat(stat_type, limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    return {
        "results": [to_remote_shape(d) for d in docs],
        "stat_type": stat_type,
        "count": len(docs),
    }


@router.get("/external/{external_id}", response_model=MatchResponse)
async def get_by_external_id(external_id: str):
    doc = await match_store.find_by_external_id(external_id)
    if doc is None:
        raise MatchNotFoundError(external_id)
    return db_to_response(doc)


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str):
    return db_to_response(await _load(match_id))


@router.get("/{match_id}/quality", response_model=QualityAssessment)
async def match_quality(match_id: str):
    doc = await _load(match_id)
    return assess_quality(doc.get("statistics"))


@router.get("/{match_id}/dominance", response_model=DominanceScores)
async def match_dominance(match_id: str):
    doc = await _load(match_id)
    stats = doc.get("statistics")
    return DominanceScores(home=dominance_score(stats, "home"), away=dominance_score(stats, "away"))


@router.get("/{match_id}/stats/detailed")
async def match_detailed_stats(match_id: str):
    doc = await _load(match_id)
    breakdown = detailed_stats(doc.get("statistics"))
    if breakdown is None:
        return {"match_id": match_id, "message": "No statistics available"}
    return {"match_id": match_id, **breakdown}
