"""
backend/app/models/sync.py

Purpose:
    Report and option contracts for the match sync engine: per-record
    dispositions, the aggregated SyncOutcome, selective-sync options, the
    incomplete-data resync result and the derived analytics reports.

Dependencies:
    - pydantic
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SyncDisposition(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    SYNC_PROTECTION_ACTIVE = "sync_protection_active"
    INVALID_REMOTE_RECORD = "invalid_remote_record"
    REMOTE_NOT_FOUND = "remote_not_found"
    NO_MATERIAL_CHANGE = "no_material_change"
    STORE_ERROR = "store_error"


class SyncDetail(BaseModel):
    external_id: str
    disposition: SyncDisposition
    message: str
    reason: SkipReason | None = None


class SyncOutcome(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    details: list[SyncDetail] = Field(default_factory=list)

    def record(
        self,
        external_id: str,
        disposition: SyncDisposition,
        message: str,
        reason: SkipReason | None = None,
    ) -> None:
        if disposition == SyncDisposition.CREATED:
            self.created += 1
        elif disposition == SyncDisposition.UPDATED:
            self.updated += 1
        elif disposition == SyncDisposition.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1
        self.details.append(
            SyncDetail(
                external_id=external_id,
                disposition=disposition,
                message=message,
                reason=reason,
            )
        )

    @classmethod
    def combine(cls, outcomes: list[SyncOutcome]) -> SyncOutcome:
        total = cls()
        for outcome in outcomes:
            total.created += outcome.created
            total.updated += outcome.updated
            total.skipped += outcome.skipped
            total.errors += outcome.errors
            total.details.extend(outcome.details)
        return total

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped + self.errors


class SelectiveSyncOptions(BaseModel):
    """Options for syncing an explicit list of external ids.

    ``date_filter`` and ``match_type_hint`` are accepted and echoed in logs but
    do not take part in the update decision.
    """

    model_config = ConfigDict(populate_by_name=True)

    force_overwrite: bool = Field(False, alias="forceOverwrite")
    stats_only: bool = Field(False, alias="statsOnly")
    date_filter: str | None = Field(None, alias="dateFilter")
    match_type_hint: str | None = Field(None, alias="matchTypeHint")


class ResyncResult(BaseModel):
    resynced: int = 0
    skipped: int = 0
    errors: int = 0
    details: list[SyncDetail] = Field(default_factory=list)


class CompletenessMissing(BaseModel):
    statistics: int = 0
    xg: int = 0
    possession_rt: int = 0
    timer: int = 0
    alt_home: int = 0
    alt_away: int = 0


class CompletenessReport(BaseModel):
    total_matches: int
    with_statistics: int
    with_xg: int
    with_possession: int
    with_timer: int
    with_alt_teams: int
    statistics_pct: float
    xg_pct: float
    possession_pct: float
    timer_pct: float
    completeness_percentage: int
    missing_fields: CompletenessMissing


class QualityMetrics(BaseModel):
    total_goals: int
    total_shots: int
    total_on_target: int
    total_dangerous_attacks: int


class QualityAssessment(BaseModel):
    quality: str
    score: int | None = None
    description: str
    metrics: QualityMetrics | None = None


class DominanceScores(BaseModel):
    home: int
    away: int


class SyncCheckReport(BaseModel):
    sync_needed: bool
    incomplete_data: bool
    db_counts: dict[str, int]
    completeness: int
    recommendation: str


class StoredMatchPage(BaseModel):
    results: list[dict[str, Any]]
    pager: dict[str, int] | None = None
    total_matches: int
