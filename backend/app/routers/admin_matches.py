"""
backend/app/routers/admin_matches.py

Purpose:
    Admin CRUD over stored football matches, including the allow_sync toggle
    (the only write path into sync protection), soft delete and the
    irreversible hard delete.

Dependencies:
    - app.services.auth_service
    - app.services.audit_service
    - app.services.match_store
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from app.models.football_match import (
    MATCH_TYPE_STATES,
    DataSource,
    LeagueRef,
    LifecycleState,
    MatchResponse,
    MatchTimer,
    MatchType,
    PeriodScore,
    TeamRef,
    db_to_response,
)
from app.services.audit_service import log_audit
from app.services.auth_service import get_admin_user
from app.services.match_store import MatchNotFoundError, match_store
from app.utils import utcnow

logger = logging.getLogger("matchsync.admin_matches")
router = APIRouter(prefix="/api/admin/matches", tags=["admin-matches"])


class MatchListResponse(BaseModel):
    items: list[MatchResponse]
    total: int
    page: int
    page_size: int


class MatchCreateBody(BaseModel):
    external_id: Optional[str] = None
    kickoff_time: int
    lifecycle_state: LifecycleState = LifecycleState.SCHEDULED
    league: LeagueRef
    home: Optional[TeamRef] = None
    away: Optional[TeamRef] = None
    alt_home: Optional[TeamRef] = None
    alt_away: Optional[TeamRef] = None
    current_score: Optional[str] = None
    score_breakdown: Optional[dict[str, PeriodScore]] = None
    timer: Optional[MatchTimer] = None
    statistics: Optional[dict[str, list[str]]] = None
    bookmaker_id: Optional[str] = None
    round: Optional[str] = None
    admin_note: Optional[str] = None


class MatchPatchBody(BaseModel):
    kickoff_time: Optional[int] = None
    lifecycle_state: Optional[LifecycleState] = None
    league: Optional[LeagueRef] = None
    home: Optional[TeamRef] = None
    away: Optional[TeamRef] = None
    alt_home: Optional[TeamRef] = None
    alt_away: Optional[TeamRef] = None
    current_score: Optional[str] = None
    score_breakdown: Optional[dict[str, PeriodScore]] = None
    timer: Optional[MatchTimer] = None
    statistics: Optional[dict[str, list[str]]] = None
    bookmaker_id: Optional[str] = None
    round: Optional[str] = None
    admin_note: Optional[str] = None


class AllowSyncBody(BaseModel):
    allow_sync: bool
    admin_note: Optional[str] = Field(None, max_length=500)


async def _require(match_id: str) -> dict:
    doc = await match_store.find_by_id(match_id, include_deleted=True)
    if doc is None:
        raise MatchNotFoundError(match_id)
    return doc


@router.get("", response_model=MatchListResponse)
async def list_matches(
    match_type: Optional[MatchType] = Query(None, alias="type"),
    protected_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin=Depends(get_admin_user),
):
    states = MATCH_TYPE_STATES[match_type] if match_type else None
    extra = {"allow_sync": False} if protected_only else None
    total = await match_store.count_active(states, extra)
    docs = await match_store.find_active(
        skip=(page - 1) * page_size, limit=page_size, states=states, extra=extra
    )
    return MatchListResponse(
        items=[db_to_response(d) for d in docs],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(match_id: str, admin=Depends(get_admin_user)):
    return db_to_response(await _require(match_id))


@router.post("", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
async def create_match(body: MatchCreateBody, request: Request, admin=Depends(get_admin_user)):
    """Manual entry. New records start syncable like any other."""
    data = body.model_dump(mode="json")
    data["data_source"] = DataSource.ADMIN.value
    admin_note = data.pop("admin_note", None)
    doc = await match_store.create(data)
    if admin_note:
        doc = await match_store.update(doc["_id"], {"admin_note": admin_note})
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=str(doc["_id"]),
        action="MATCH_CREATED",
        metadata={"external_id": doc.get("external_id")},
        request=request,
    )
    return db_to_response(doc)


@router.patch("/{match_id}", response_model=MatchResponse)
async def update_match(
    match_id: str,
    body: MatchPatchBody,
    request: Request,
    admin=Depends(get_admin_user),
):
    """Admin edit of match content. Does not touch allow_sync."""
    patch = body.model_dump(mode="json", exclude_unset=True)
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update.")
    before = await _require(match_id)
    patch["data_source"] = DataSource.ADMIN.value
    doc = await match_store.update(before["_id"], patch)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=str(doc["_id"]),
        action="MATCH_UPDATED",
        metadata={
            "external_id": doc.get("external_id"),
            "changed_fields": sorted(k for k in patch if k != "data_source"),
        },
        request=request,
    )
    return db_to_response(doc)


@router.patch("/{match_id}/allow-sync", response_model=MatchResponse)
async def set_allow_sync(
    match_id: str,
    body: AllowSyncBody,
    request: Request,
    admin=Depends(get_admin_user),
):
    before = await _require(match_id)
    doc = await match_store.set_allow_sync(before["_id"], body.allow_sync, body.admin_note)
    logger.info(
        "allow_sync %s -> %s for match %s by %s",
        before.get("allow_sync") is not False, body.allow_sync, doc["_id"], admin["_id"],
    )
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=str(doc["_id"]),
        action="MATCH_ALLOW_SYNC_TOGGLED",
        metadata={
            "external_id": doc.get("external_id"),
            "before": before.get("allow_sync") is not False,
            "after": body.allow_sync,
            "admin_note": body.admin_note,
        },
        request=request,
    )
    return db_to_response(doc)


@router.delete("/{match_id}")
async def soft_delete_match(match_id: str, request: Request, admin=Depends(get_admin_user)):
    doc = await match_store.soft_delete(match_id)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=str(doc["_id"]),
        action="MATCH_SOFT_DELETED",
        metadata={"external_id": doc.get("external_id")},
        request=request,
    )
    return {"ok": True, "id": str(doc["_id"]), "record_status": doc.get("record_status")}


@router.delete("/{match_id}/hard")
async def hard_delete_match(
    match_id: str,
    request: Request,
    confirm: bool = Query(False, description="Must be true; the delete is irreversible"),
    admin=Depends(get_admin_user),
):
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Hard delete is irreversible; pass confirm=true.",
        )
    doc = await match_store.hard_delete(match_id)
    await log_audit(
        actor_id=str(admin["_id"]),
        target_id=str(doc["_id"]),
        action="MATCH_HARD_DELETED",
        metadata={"external_id": doc.get("purged_external_id"), "at": utcnow().isoformat()},
        request=request,
    )
    return {"ok": True, "id": str(doc["_id"]), "record_status": doc.get("record_status")}
