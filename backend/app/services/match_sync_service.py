"""
backend/app/services/match_sync_service.py

Purpose:
    Sync orchestrators on top of the reconciliation engine: full sync of one
    lifecycle bucket (paged, capped), the daily "full sync all" bundle,
    selective sync by explicit external ids and resync of stored matches with
    incomplete statistics.

Dependencies:
    - app.providers.betsapi
    - app.services.match_reconciliation_service
    - app.services.match_store
    - app.config
"""

from __future__ import annotations

import logging
from typing import Any

from app.config import settings
from app.models.football_match import DataSource, MatchType
from app.models.sync import (
    ResyncResult,
    SelectiveSyncOptions,
    SkipReason,
    SyncDisposition,
    SyncOutcome,
)
from app.providers.betsapi import BetsApiProvider, RemoteFetchError, betsapi_provider
from app.services.match_reconciliation_service import MatchReconciliationService
from app.services.match_store import MatchStore, match_store
from app.services.remote_match_adapter import InvalidRemoteRecord, build_remote_match
from app.utils import parse_provider_day, provider_day

logger = logging.getLogger("matchsync.sync")


class MatchSyncService:
    def __init__(
        self,
        provider: BetsApiProvider | None = None,
        store: MatchStore | None = None,
    ) -> None:
        self._provider = provider or betsapi_provider
        self._store = store or match_store
        self._engine = MatchReconciliationService(self._store)

    async def fetch_all_pages(
        self,
        match_type: MatchType,
        day: str | None = None,
        league_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Collect every listing page, stopping at SYNC_MAX_PAGES.

        Raises RemoteFetchError on the first failed page; partial data is
        discarded.
        """
        rows: list[dict[str, Any]] = []
        max_pages = max(1, int(settings.SYNC_MAX_PAGES))
        page = 1
        while True:
            result = await self._provider.fetch_by_state(match_type, page=page, day=day, league_id=league_id)
            rows.extend(result.results)
            if match_type == MatchType.INPLAY or result.pager is None or not result.pager.has_more:
                break
            if page >= max_pages:
                logger.warning(
                    "Full sync %s day=%s stopped at page cap %d (total=%d)",
                    match_type.value, day, max_pages, result.pager.total,
                )
                break
            page += 1
        return rows

    async def full_sync(
        self,
        match_type: MatchType | str,
        day: str | None = None,
        league_id: str | None = None,
    ) -> SyncOutcome:
        match_type = MatchType(match_type)
        if day is not None:
            parse_provider_day(day)
        rows = await self.fetch_all_pages(match_type, day, league_id)
        logger.info(
            "Full sync %s day=%s league=%s fetched %d record(s)", match_type.value, day, league_id, len(rows)
        )
        return await self._engine.reconcile_batch(rows, data_source=DataSource.FULL_SYNC)

    async def full_sync_all(self) -> SyncOutcome:
        """Upcoming today, upcoming tomorrow and ended today, summed."""
        today = provider_day(0)
        tomorrow = provider_day(1)
        outcomes = [
            await self.full_sync(MatchType.UPCOMING, today),
            await self.full_sync(MatchType.UPCOMING, tomorrow),
            await self.full_sync(MatchType.ENDED, today),
        ]
        return SyncOutcome.combine(outcomes)

    async def _fetch_remote(self, external_id: str, outcome: SyncOutcome):
        """Detail fetch for one id; records a benign skip when nothing usable came back."""
        try:
            raw = await self._provider.fetch_detail(external_id)
        except RemoteFetchError as exc:
            logger.info("Detail fetch failed external_id=%s: %s", external_id, exc)
            outcome.record(external_id, SyncDisposition.SKIPPED, "remote record not found", SkipReason.REMOTE_NOT_FOUND)
            return None
        if raw is None:
            outcome.record(external_id, SyncDisposition.SKIPPED, "remote record not found", SkipReason.REMOTE_NOT_FOUND)
            return None
        try:
            return build_remote_match(raw)
        except InvalidRemoteRecord as exc:
            outcome.record(
                external_id,
                SyncDisposition.SKIPPED,
                f"invalid remote record: {exc.reason}",
                SkipReason.INVALID_REMOTE_RECORD,
            )
            return None

    async def selective_sync(
        self,
        external_ids: list[str],
        options: SelectiveSyncOptions | None = None,
    ) -> SyncOutcome:
        options = options or SelectiveSyncOptions()
        if options.date_filter or options.match_type_hint:
            logger.info(
                "Selective sync hints received (not applied) date_filter=%s match_type_hint=%s",
                options.date_filter, options.match_type_hint,
            )
        outcome = SyncOutcome()
        for external_id in external_ids:
            external_id = str(external_id or "").strip()
            if not external_id:
                outcome.record(
                    "",
                    SyncDisposition.SKIPPED,
                    "invalid remote record: missing external id",
                    SkipReason.INVALID_REMOTE_RECORD,
                )
                continue
            remote = await self._fetch_remote(external_id, outcome)
            if remote is None:
                continue
            await self._engine.reconcile_record(
                remote, outcome, data_source=DataSource.SELECTIVE_SYNC, options=options
            )
        logger.info(
            "Selective sync ids=%d created=%d updated=%d skipped=%d errors=%d",
            len(external_ids), outcome.created, outcome.updated, outcome.skipped, outcome.errors,
        )
        return outcome

    async def resync_incomplete(self, limit: int | None = None) -> ResyncResult:
        batch_limit = int(limit or settings.RESYNC_BATCH_LIMIT)
        docs = await self._store.find_incomplete(limit=batch_limit)
        options = SelectiveSyncOptions(stats_only=False)
        outcome = SyncOutcome()
        for doc in docs:
            external_id = doc.get("external_id")
            if not external_id:
                continue
            remote = await self._fetch_remote(str(external_id), outcome)
            if remote is None:
                continue
            await self._engine.reconcile_record(
                remote, outcome, data_source=DataSource.INCOMPLETE_RESYNC, options=options
            )
        logger.info(
            "Incomplete resync scanned=%d resynced=%d skipped=%d errors=%d",
            len(docs), outcome.updated + outcome.created, outcome.skipped, outcome.errors,
        )
        return ResyncResult(
            resynced=outcome.updated + outcome.created,
            skipped=outcome.skipped,
            errors=outcome.errors,
            details=outcome.details,
        )


match_sync_service = MatchSyncService()
