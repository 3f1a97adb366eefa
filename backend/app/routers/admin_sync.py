"""
backend/app/routers/admin_sync.py

Purpose:
    Admin HTTP surface for the match sync engine: full sync per lifecycle
    bucket, the daily full-sync bundle, selective sync by external ids,
    incomplete-data resync and the sync-needed check.

Dependencies:
    - app.services.auth_service
    - app.services.audit_service
    - app.services.match_sync_service
    - app.services.match_analytics_service
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from app.models.football_match import MatchType
from app.models.sync import ResyncResult, SelectiveSyncOptions, SyncCheckReport, SyncOutcome
from app.providers.betsapi import betsapi_provider
from app.services.audit_service import log_audit
from app.services.auth_service import get_admin_user
from app.services.match_analytics_service import match_analytics_service
from app.services.match_sync_service import match_sync_service
from app.utils import parse_provider_day

logger = logging.getLogger("matchsync.admin_sync")
router = APIRouter(prefix="/api/admin/sync", tags=["admin-sync"])

MAX_SELECTIVE_IDS = 200


class SelectiveSyncBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    external_ids: list[str] = Field(..., alias="externalIds", min_length=1, max_length=MAX_SELECTIVE_IDS)
    options: Optional[SelectiveSyncOptions] = None


def _counts(outcome: SyncOutcome | ResyncResult) -> dict:
    return outcome.model_dump(exclude={"details"})


@router.post("/full/{match_type}", response_model=SyncOutcome)
async def trigger_full_sync(
    match_type: MatchType,
    request: Request,
    day: Optional[str] = Query(None, description="Provider calendar day, YYYYMMDD"),
    league_id: Optional[str] = Query(None, description="Provider league id filter"),
    admin=Depends(get_admin_user),
):
    """Fetch every page of one lifecycle bucket and reconcile it."""
    if day is not None:
        try:
            parse_provider_day(day)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    outcome = await match_sync_service.full_sync(match_type, day, league_id)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=f"sync:full:{match_type.value}:{day or 'any'}",
        action="SYNC_FULL_TRIGGERED",
        metadata={"league_id": league_id, **_counts(outcome)},
        request=request,
    )
    return outcome


@router.post("/full-all", response_model=SyncOutcome)
async def trigger_full_sync_all(request: Request, admin=Depends(get_admin_user)):
    """Upcoming today, upcoming tomorrow and ended today."""
    outcome = await match_sync_service.full_sync_all()
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id="sync:full-all",
        action="SYNC_FULL_ALL_TRIGGERED",
        metadata=_counts(outcome),
        request=request,
    )
    return outcome


@router.post("/selective", response_model=SyncOutcome)
async def trigger_selective_sync(
    body: SelectiveSyncBody,
    request: Request,
    admin=Depends(get_admin_user),
):
    outcome = await match_sync_service.selective_sync(body.external_ids, body.options)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id="sync:selective",
        action="SYNC_SELECTIVE_TRIGGERED",
        metadata={
            "external_ids": body.external_ids,
            "options": (body.options or SelectiveSyncOptions()).model_dump(),
            **_counts(outcome),
        },
        request=request,
    )
    return outcome


@router.post("/resync-incomplete", response_model=ResyncResult)
async def trigger_resync_incomplete(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    admin=Depends(get_admin_user),
):
    """Re-fetch stored matches missing statistics, xG or possession."""
    result = await match_sync_service.resync_incomplete(limit)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id="sync:resync-incomplete",
        action="SYNC_RESYNC_INCOMPLETE_TRIGGERED",
        metadata=_counts(result),
        request=request,
    )
    return result


@router.get("/check", response_model=SyncCheckReport)
async def sync_check(admin=Depends(get_admin_user)):
    return await match_analytics_service.sync_check()


@router.get("/leagues")
async def provider_leagues(page: int = Query(1, ge=1), admin=Depends(get_admin_user)):
    """Provider league catalogue, passed through for league-filtered syncs."""
    result = await betsapi_provider.fetch_leagues(page)
    return {
        "results": result.results,
        "pager": vars(result.pager) if result.pager else None,
    }
