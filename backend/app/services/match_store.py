"""
backend/app/services/match_store.py

Purpose:
    Persistence access layer for football matches. Owns lookups by external
    id, lifecycle state, kickoff range and completeness, plus the write paths:
    create, administrator update, sync patch (protection-aware), allow-sync
    toggle, soft delete and hard delete.

Dependencies:
    - app.database
    - app.models.football_match
    - app.utils
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import app.database as _db
from app.models.football_match import MATCH_TYPE_STATES, LifecycleState, LocalMatch, MatchType, RecordStatus
from app.utils import utcnow

logger = logging.getLogger("matchsync.match_store")

# Keys only an administrator may write; stripped from every sync patch.
ADMIN_OWNED_FIELDS = frozenset({"allow_sync", "admin_note", "record_status", "deleted_at"})

_ACTIVE = {"record_status": RecordStatus.ACTIVE.value}
_NOT_PURGED = {"record_status": {"$ne": RecordStatus.PERMANENTLY_DELETED.value}}
_KICKOFF_ASC = [("kickoff_time", 1), ("_id", 1)]


class DuplicateExternalIdError(Exception):
    """Raised when another stored record already holds the external id."""

    def __init__(self, external_id: str):
        super().__init__(f"external_id {external_id} already exists")
        self.external_id = external_id


class MatchNotFoundError(Exception):
    """Raised when an id does not resolve to a stored match."""

    def __init__(self, match_id: Any):
        super().__init__(f"match {match_id} not found")
        self.match_id = match_id


class SyncProtectionActive(Exception):
    """Raised when a sync write hits a record with allow_sync = false."""

    def __init__(self, match_id: Any):
        super().__init__("sync protection active")
        self.match_id = match_id


def _oid(match_id: str | ObjectId) -> ObjectId:
    if isinstance(match_id, ObjectId):
        return match_id
    try:
        return ObjectId(str(match_id))
    except (InvalidId, TypeError) as exc:
        raise MatchNotFoundError(match_id) from exc


def _state_values(states: Iterable[LifecycleState | str]) -> list[str]:
    return [LifecycleState(s).value for s in states]


class MatchStore:
    @property
    def _col(self):
        return _db.db.football_matches

    # ---- Reads ----

    async def find_by_external_id(self, external_id: str, *, include_deleted: bool = False) -> dict | None:
        base = _NOT_PURGED if include_deleted else _ACTIVE
        return await self._col.find_one({"external_id": str(external_id), **base})

    async def find_by_id(self, match_id: str | ObjectId, *, include_deleted: bool = False) -> dict | None:
        base = _NOT_PURGED if include_deleted else _ACTIVE
        try:
            oid = _oid(match_id)
        except MatchNotFoundError:
            return None
        return await self._col.find_one({"_id": oid, **base})

    async def find_by_lifecycle_state(
        self, states: LifecycleState | str | Iterable[LifecycleState | str], limit: int | None = None
    ) -> list[dict]:
        if isinstance(states, (str, LifecycleState)):
            states = [states]
        cursor = self._col.find({**_ACTIVE, "lifecycle_state": {"$in": _state_values(states)}}).sort(_KICKOFF_ASC)
        if limit:
            cursor = cursor.limit(int(limit))
        return await cursor.to_list(length=limit or None)

    async def find_by_time_range(
        self,
        start_epoch: int,
        end_epoch: int,
        *,
        states: Iterable[LifecycleState | str] | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        query: dict[str, Any] = {**_ACTIVE, "kickoff_time": {"$gte": int(start_epoch), "$lte": int(end_epoch)}}
        if states is not None:
            query["lifecycle_state"] = {"$in": _state_values(states)}
        cursor = self._col.find(query).sort(_KICKOFF_ASC)
        if limit:
            cursor = cursor.limit(int(limit))
        return await cursor.to_list(length=limit or None)

    async def find_incomplete(self, limit: int = 100) -> list[dict]:
        """Active provider-backed records missing statistics, xG or possession."""
        query = {
            **_ACTIVE,
            "external_id": {"$exists": True},
            "$or": [
                {"statistics": None},
                {"statistics.xg": {"$exists": False}},
                {"statistics.possession_rt": {"$exists": False}},
            ],
        }
        cursor = self._col.find(query).sort(_KICKOFF_ASC).limit(int(limit))
        return await cursor.to_list(length=int(limit))

    async def find_active(
        self,
        *,
        skip: int = 0,
        limit: int = 50,
        states: Iterable[LifecycleState | str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> list[dict]:
        query: dict[str, Any] = {**_ACTIVE, **(extra or {})}
        if states is not None:
            query["lifecycle_state"] = {"$in": _state_values(states)}
        cursor = self._col.find(query).sort(_KICKOFF_ASC).skip(int(skip)).limit(int(limit))
        return await cursor.to_list(length=int(limit))

    async def count_active(
        self,
        states: Iterable[LifecycleState | str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> int:
        query: dict[str, Any] = {**_ACTIVE, **(extra or {})}
        if states is not None:
            query["lifecycle_state"] = {"$in": _state_values(states)}
        return await self._col.count_documents(query)

    async def count_by_match_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for match_type in MatchType:
            counts[match_type.value] = await self.count_active(MATCH_TYPE_STATES[match_type])
        counts["total"] = sum(counts.values())
        return counts

    # ---- Writes ----

    async def create(self, data: dict[str, Any]) -> dict:
        """Insert a new active record. New records are always syncable."""
        external_id = data.get("external_id")
        if external_id:
            clash = await self._col.find_one({"external_id": str(external_id), **_NOT_PURGED}, {"_id": 1})
            if clash is not None:
                raise DuplicateExternalIdError(str(external_id))

        now = utcnow()
        doc = {
            **{k: v for k, v in data.items() if k not in {"_id", "external_id"}},
            "record_status": RecordStatus.ACTIVE.value,
            "allow_sync": True,
            "deleted_at": None,
            "created_at": now,
            "updated_at": now,
        }
        # A null external_id would still be indexed by the sparse unique index.
        if external_id:
            doc["external_id"] = str(external_id)
        # Shape check only; the dict is stored as given.
        LocalMatch.model_validate(doc)
        try:
            result = await self._col.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateExternalIdError(str(external_id)) from exc
        doc["_id"] = result.inserted_id
        return doc

    async def update(self, match_id: str | ObjectId, patch: dict[str, Any]) -> dict:
        """Administrator update. Always stamps updated_at."""
        changes = {k: v for k, v in patch.items() if k not in {"_id", "created_at"}}
        changes["updated_at"] = utcnow()
        try:
            doc = await self._col.find_one_and_update(
                {"_id": _oid(match_id), **_NOT_PURGED},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise DuplicateExternalIdError(str(changes.get("external_id"))) from exc
        if doc is None:
            raise MatchNotFoundError(match_id)
        return doc

    async def apply_sync_patch(self, match_id: str | ObjectId, patch: dict[str, Any]) -> dict:
        """Engine write path. The protection check is part of the write filter,
        so a flag flipped after the engine read the record still wins.
        """
        oid = _oid(match_id)
        changes = {k: v for k, v in patch.items() if k not in ADMIN_OWNED_FIELDS and k not in {"_id", "created_at"}}
        changes["updated_at"] = utcnow()
        doc = await self._col.find_one_and_update(
            {"_id": oid, **_ACTIVE, "allow_sync": {"$ne": False}},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            return doc
        current = await self._col.find_one({"_id": oid, **_ACTIVE}, {"allow_sync": 1})
        if current is not None and current.get("allow_sync") is False:
            raise SyncProtectionActive(match_id)
        raise MatchNotFoundError(match_id)

    async def set_allow_sync(self, match_id: str | ObjectId, allow: bool, note: str | None = None) -> dict:
        changes: dict[str, Any] = {"allow_sync": bool(allow)}
        if note is not None:
            changes["admin_note"] = note
        return await self.update(match_id, changes)

    async def soft_delete(self, match_id: str | ObjectId) -> dict:
        now = utcnow()
        doc = await self._col.find_one_and_update(
            {"_id": _oid(match_id), **_ACTIVE},
            {"$set": {"record_status": RecordStatus.DELETED.value, "deleted_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise MatchNotFoundError(match_id)
        return doc

    async def hard_delete(self, match_id: str | ObjectId) -> dict:
        """Irreversible. Releases the external id for future creation."""
        oid = _oid(match_id)
        current = await self._col.find_one({"_id": oid, **_NOT_PURGED})
        if current is None:
            raise MatchNotFoundError(match_id)
        now = utcnow()
        doc = await self._col.find_one_and_update(
            {"_id": oid, **_NOT_PURGED},
            {
                "$set": {
                    "record_status": RecordStatus.PERMANENTLY_DELETED.value,
                    "purged_external_id": current.get("external_id"),
                    "deleted_at": current.get("deleted_at") or now,
                    "updated_at": now,
                },
                "$unset": {"external_id": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise MatchNotFoundError(match_id)
        logger.warning("Hard-deleted match %s (external_id=%s)", oid, current.get("external_id"))
        return doc


match_store = MatchStore()
