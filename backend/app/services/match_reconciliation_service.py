"""
backend/app/services/match_reconciliation_service.py

Purpose:
    Create/update/skip decision engine for provider matches against the local
    match store. Honours the administrator-owned allow_sync flag on every
    path, isolates per-record failures and reports each record's disposition
    in input order.

Dependencies:
    - app.services.match_store
    - app.services.remote_match_adapter
    - app.models.sync
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from app.models.football_match import DataSource, RemoteMatch
from app.models.sync import SelectiveSyncOptions, SkipReason, SyncDisposition, SyncOutcome
from app.services.match_store import MatchStore, SyncProtectionActive, match_store
from app.services.remote_match_adapter import InvalidRemoteRecord, build_remote_match, remote_external_id
from app.utils import utcnow

logger = logging.getLogger("matchsync.reconciliation")

PROTECTED_MESSAGE = "sync protection active"

# Remote-owned fields merged into an existing record.
MERGE_FIELDS: tuple[str, ...] = (
    "sport_id",
    "kickoff_time",
    "lifecycle_state",
    "league",
    "home",
    "away",
    "alt_home",
    "alt_away",
    "current_score",
    "score_breakdown",
    "timer",
    "statistics",
    "bookmaker_id",
    "round",
)
STATS_ONLY_FIELDS: tuple[str, ...] = ("statistics", "timer")
# Stat pairs whose absence puts a record on the incomplete-data resync list.
GAP_STAT_KEYS: tuple[str, ...] = ("xg", "possession_rt")


def remote_to_document(remote: RemoteMatch) -> dict[str, Any]:
    """Full field mapping used when a record is first seen."""
    return remote.model_dump(mode="json")


def compute_changes(existing: dict[str, Any], remote: RemoteMatch, fields: Iterable[str] = MERGE_FIELDS) -> dict[str, Any]:
    """Fields whose remote value differs from the stored one.

    Values the remote does not carry are left alone, so a stored statistics
    bag is never erased by a payload without one.
    """
    incoming = remote_to_document(remote)
    changes: dict[str, Any] = {}
    for key in fields:
        value = incoming.get(key)
        if value is None:
            continue
        if existing.get(key) != value:
            changes[key] = value
    return changes


def fills_stat_gap(existing: dict[str, Any], remote: RemoteMatch) -> bool:
    """Remote carries an xG or possession pair the stored record lacks."""
    local = existing.get("statistics") or {}
    incoming = remote.statistics or {}
    return any(incoming.get(key) and not local.get(key) for key in GAP_STAT_KEYS)


def should_update(existing: dict[str, Any], remote: RemoteMatch, *, fill_gaps: bool = False) -> bool:
    """Selective-sync heuristic: state or score moved, or stats missing locally.

    With ``fill_gaps`` a remote xG/possession pair missing locally also counts.
    """
    if str(existing.get("lifecycle_state") or "") != remote.lifecycle_state.value:
        return True
    if (existing.get("current_score") or None) != remote.current_score:
        return True
    if not existing.get("statistics"):
        return True
    return fill_gaps and fills_stat_gap(existing, remote)


class MatchReconciliationService:
    def __init__(self, store: MatchStore | None = None) -> None:
        self._store = store or match_store

    async def reconcile_batch(self, raw_rows: list[dict[str, Any]], *, data_source: DataSource) -> SyncOutcome:
        """Reconcile a full-sync batch. Never raises for a single record."""
        outcome = SyncOutcome()
        for raw in raw_rows:
            try:
                remote = build_remote_match(raw)
            except InvalidRemoteRecord as exc:
                outcome.record(
                    exc.external_id or remote_external_id(raw),
                    SyncDisposition.SKIPPED,
                    f"invalid remote record: {exc.reason}",
                    SkipReason.INVALID_REMOTE_RECORD,
                )
                continue
            await self.reconcile_record(remote, outcome, data_source=data_source)

        logger.info(
            "Reconciled %d record(s) source=%s created=%d updated=%d skipped=%d errors=%d",
            len(raw_rows), data_source.value, outcome.created, outcome.updated, outcome.skipped, outcome.errors,
        )
        return outcome

    async def reconcile_record(
        self,
        remote: RemoteMatch,
        outcome: SyncOutcome,
        *,
        data_source: DataSource,
        options: SelectiveSyncOptions | None = None,
    ) -> SyncDisposition:
        """Decide and apply one record, appending its disposition to ``outcome``.

        ``options`` switches on selective semantics: without force_overwrite an
        update needs ``should_update``; stats_only narrows the merge to
        statistics and timer. Protection is never bypassed.
        """
        external_id = remote.external_id
        try:
            existing = await self._store.find_by_external_id(external_id)
            if existing is None:
                doc = {**remote_to_document(remote), "data_source": data_source.value, "last_synced_at": utcnow()}
                await self._store.create(doc)
                outcome.record(external_id, SyncDisposition.CREATED, "created")
                return SyncDisposition.CREATED

            if existing.get("allow_sync") is False:
                outcome.record(external_id, SyncDisposition.SKIPPED, PROTECTED_MESSAGE, SkipReason.SYNC_PROTECTION_ACTIVE)
                return SyncDisposition.SKIPPED

            force = bool(options and options.force_overwrite)
            fill_gaps = data_source == DataSource.INCOMPLETE_RESYNC
            if options is not None and not force and not should_update(existing, remote, fill_gaps=fill_gaps):
                outcome.record(external_id, SyncDisposition.SKIPPED, "no material change", SkipReason.NO_MATERIAL_CHANGE)
                return SyncDisposition.SKIPPED

            fields = STATS_ONLY_FIELDS if options is not None and options.stats_only else MERGE_FIELDS
            changes = compute_changes(existing, remote, fields)
            if not changes and not force:
                outcome.record(external_id, SyncDisposition.SKIPPED, "no material change", SkipReason.NO_MATERIAL_CHANGE)
                return SyncDisposition.SKIPPED

            changes.update({"data_source": data_source.value, "last_synced_at": utcnow()})
            await self._store.apply_sync_patch(existing["_id"], changes)
            outcome.record(external_id, SyncDisposition.UPDATED, f"updated {', '.join(sorted(changes))}")
            return SyncDisposition.UPDATED

        except SyncProtectionActive:
            # Flag flipped between read and write.
            outcome.record(external_id, SyncDisposition.SKIPPED, PROTECTED_MESSAGE, SkipReason.SYNC_PROTECTION_ACTIVE)
            return SyncDisposition.SKIPPED
        except Exception as exc:
            logger.warning("Reconcile failed external_id=%s: %s", external_id, exc, exc_info=True)
            outcome.record(external_id, SyncDisposition.ERROR, f"{type(exc).__name__}: {exc}", SkipReason.STORE_ERROR)
            return SyncDisposition.ERROR


match_reconciliation_service = MatchReconciliationService()
