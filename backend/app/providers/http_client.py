"""
backend/app/providers/http_client.py

Purpose:
    Shared outbound HTTP transport for provider adapters. Wraps
    httpx.AsyncClient with bounded retries, exponential backoff that honours
    Retry-After, and a per-provider circuit breaker.

Dependencies:
    - httpx
"""

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("matchsync.http_client")

_TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
_MAX_BACKOFF_SECONDS = 60.0


class CircuitOpenError(RuntimeError):
    """Raised instead of calling a provider whose breaker is open."""


class CircuitBreaker:
    """Opens after consecutive failures; half-opens once the cool-down passes."""

    def __init__(self, failure_threshold: int = 3, recovery_timeout: float = 300.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def record_success(self) -> None:
        if self.is_open:
            logger.info("Circuit breaker closed after successful call")
        self.failure_count = 0
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count >= self.failure_threshold:
            if not self.is_open:
                logger.warning("Circuit breaker OPEN after %d failures", self.failure_count)
            self.opened_at = time.monotonic()

    def can_attempt(self) -> bool:
        if self.opened_at is None:
            return True
        return time.monotonic() - self.opened_at >= self.recovery_timeout


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    for header in ("retry-after", "x-ratelimit-retry-after"):
        raw = response.headers.get(header)
        if raw is None:
            continue
        try:
            return max(0.0, float(raw))
        except (TypeError, ValueError):
            continue
    return None


def safe_url(url: str) -> str:
    """Drop the query string (it carries the provider token) for logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient with retry, backoff and a circuit breaker."""

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        max_retries: int = 2,
        base_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._name = name
        self._max_retries = max(0, int(max_retries))
        self._base_delay = base_delay
        self.circuit = CircuitBreaker()

    def _backoff(self, attempt: int, response: httpx.Response | None = None) -> float:
        delay = _retry_after_seconds(response) if response is not None else None
        if delay is None:
            delay = self._base_delay * (2 ** attempt)
        return min(delay, _MAX_BACKOFF_SECONDS)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transient statuses and network errors.

        Returns the last response when every attempt hit a transient status so
        the caller can decide how to surface it. Raises the last network
        error when no response was ever received, and CircuitOpenError when
        the breaker refuses the call.
        """
        if not self.circuit.can_attempt():
            raise CircuitOpenError(f"{self._name} circuit open for {safe_url(url)}")

        attempts = self._max_retries + 1
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError) as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, safe_url(url), attempt + 1, attempts, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            if resp.status_code not in _TRANSIENT_STATUSES:
                self.circuit.record_success()
                return resp

            last_resp = resp
            logger.warning(
                "[%s] Transient status %d on %s %s (attempt %d/%d)",
                self._name, resp.status_code, method, safe_url(url), attempt + 1, attempts,
            )
            if attempt < self._max_retries:
                await asyncio.sleep(self._backoff(attempt, resp))

        self.circuit.record_failure()
        if last_resp is not None:
            logger.error(
                "[%s] Giving up on %s %s after %d attempts (last status %d)",
                self._name, method, safe_url(url), attempts, last_resp.status_code,
            )
            return last_resp

        logger.error(
            "[%s] Giving up on %s %s after %d attempts: %s",
            self._name, method, safe_url(url), attempts, last_exc,
        )
        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
