"""
backend/app/providers/betsapi.py

Purpose:
    BetsAPI (b365api) football source. Fetches paginated match listings per
    lifecycle bucket (upcoming, inplay, ended), single-match detail and the
    league catalogue, and normalizes the HTTP envelope into RemotePage values.
    Records are returned raw; field validation happens in
    app.services.remote_match_adapter.

Dependencies:
    - httpx
    - app.config
    - app.providers.http_client
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import settings
from app.models.football_match import MatchType
from app.providers.http_client import CircuitOpenError, ResilientClient, safe_url

logger = logging.getLogger("matchsync.betsapi")

_LIST_PATHS: dict[MatchType, str] = {
    MatchType.UPCOMING: "/v3/events/upcoming",
    MatchType.INPLAY: "/v3/events/inplay",
    MatchType.ENDED: "/v3/events/ended",
}
_DETAIL_PATH = "/v1/event/view"
_LEAGUE_PATH = "/v1/league"


class RemoteFetchError(Exception):
    """The provider call failed or returned a body we cannot use."""

    def __init__(self, message: str, *, state: str | None = None, page: int | None = None, cause: Any = None):
        super().__init__(message)
        self.state = state
        self.page = page
        self.cause = cause

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.state:
            parts.append(f"state={self.state}")
        if self.page is not None:
            parts.append(f"page={self.page}")
        if self.cause is not None:
            parts.append(f"cause={self.cause}")
        return " ".join(parts)


@dataclass
class Pager:
    page: int
    per_page: int
    total: int

    @property
    def has_more(self) -> bool:
        return self.per_page > 0 and self.page * self.per_page < self.total


@dataclass
class RemotePage:
    results: list[dict[str, Any]] = field(default_factory=list)
    pager: Pager | None = None


def _parse_pager(raw: Any) -> Pager | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Pager(
            page=int(raw.get("page") or 1),
            per_page=int(raw.get("per_page") or 0),
            total=int(raw.get("total") or 0),
        )
    except (TypeError, ValueError):
        return None


class BetsApiProvider:
    """HTTP adapter for the BetsAPI soccer endpoints."""

    def __init__(self) -> None:
        self._client = ResilientClient(
            "betsapi",
            timeout=settings.BETSAPI_TIMEOUT_SECONDS,
            max_retries=settings.BETSAPI_MAX_RETRIES,
            base_delay=settings.BETSAPI_RETRY_BASE_DELAY,
        )

    @property
    def circuit_open(self) -> bool:
        return self._client.circuit.is_open

    def _build_url(self, path: str) -> str:
        base = str(settings.BETSAPI_BASE_URL or "").rstrip("/")
        if not base:
            raise RemoteFetchError("BETSAPI_BASE_URL is missing.")
        return f"{base}/{path.lstrip('/')}"

    def _auth_token(self) -> str:
        token = str(settings.BETSAPI_TOKEN or "").strip()
        if not token:
            raise RemoteFetchError("BETSAPI_TOKEN is missing.")
        return token

    async def _get(self, path: str, params: dict[str, Any], *, state: str | None = None, page: int | None = None) -> dict[str, Any]:
        url = self._build_url(path)
        query = {"token": self._auth_token(), **{k: v for k, v in params.items() if v is not None}}
        logger.info("BetsAPI call: GET %s %s", safe_url(url), {k: v for k, v in query.items() if k != "token"})
        try:
            response = await self._client.get(url, params=query)
        except (httpx.HTTPError, CircuitOpenError) as exc:
            raise RemoteFetchError("BetsAPI request failed", state=state, page=page, cause=exc) from exc

        if response.status_code >= 400:
            raise RemoteFetchError(
                f"BetsAPI returned HTTP {response.status_code}",
                state=state,
                page=page,
                cause=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteFetchError("BetsAPI returned a non-JSON body", state=state, page=page, cause=exc) from exc
        if not isinstance(payload, dict):
            raise RemoteFetchError("BetsAPI body is not an object", state=state, page=page)
        if str(payload.get("success", 1)) in {"0", "False", "false"}:
            raise RemoteFetchError(
                "BetsAPI reported failure",
                state=state,
                page=page,
                cause=payload.get("error") or payload.get("error_detail"),
            )
        return payload

    @staticmethod
    def _results(payload: dict[str, Any], *, state: str | None, page: int | None) -> list[dict[str, Any]]:
        results = payload.get("results")
        if results is None:
            return []
        if not isinstance(results, list):
            raise RemoteFetchError("BetsAPI results is not a list", state=state, page=page)
        return [row for row in results if isinstance(row, dict)]

    async def fetch_by_state(
        self,
        match_type: MatchType | str,
        page: int = 1,
        day: str | None = None,
        league_id: str | None = None,
    ) -> RemotePage:
        """One listing page for a lifecycle bucket.

        ``inplay`` is a single unpaged snapshot, so ``page`` and ``day`` are not
        sent for it. ``day`` is a provider calendar day (YYYYMMDD).
        """
        match_type = MatchType(match_type)
        if page < 1:
            raise ValueError("page must be >= 1")
        params: dict[str, Any] = {"sport_id": settings.BETSAPI_SPORT_ID, "league_id": league_id}
        if match_type != MatchType.INPLAY:
            params["page"] = page
            params["day"] = day
        payload = await self._get(_LIST_PATHS[match_type], params, state=match_type.value, page=page)
        return RemotePage(
            results=self._results(payload, state=match_type.value, page=page),
            pager=_parse_pager(payload.get("pager")),
        )

    async def fetch_detail(self, external_id: str) -> dict[str, Any] | None:
        """Single event view; None when the provider knows no such event."""
        payload = await self._get(_DETAIL_PATH, {"event_id": external_id}, state="detail")
        results = self._results(payload, state="detail", page=None)
        return results[0] if results else None

    async def fetch_leagues(self, page: int = 1) -> RemotePage:
        params = {"sport_id": settings.BETSAPI_SPORT_ID, "page": page}
        payload = await self._get(_LEAGUE_PATH, params, state="leagues", page=page)
        return RemotePage(
            results=self._results(payload, state="leagues", page=page),
            pager=_parse_pager(payload.get("pager")),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


betsapi_provider = BetsApiProvider()
