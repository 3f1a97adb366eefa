"""
backend/tests/test_http_client.py

Purpose:
    ResilientClient retry and circuit breaker behavior against an in-process
    httpx mock transport.
"""

from __future__ import annotations

import sys

import httpx
import pytest

sys.path.insert(0, "backend")

from app.providers.http_client import CircuitBreaker, CircuitOpenError, ResilientClient, safe_url


def _client(handler) -> ResilientClient:
    return ResilientClient("test", max_retries=2, base_delay=0.0, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_retries_transient_status_then_succeeds():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler)
    resp = await client.get("https://api.example.test/v3/events/upcoming?token=x")

    assert resp.status_code == 200
    assert len(calls) == 2
    assert client.circuit.failure_count == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_response_and_count_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    client = _client(handler)
    resp = await client.get("https://api.example.test/x")

    assert resp.status_code == 502
    assert client.circuit.failure_count == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_network_error_on_every_attempt_raises():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)
    with pytest.raises(httpx.ConnectError):
        await client.get("https://api.example.test/x")
    assert len(attempts) == 3
    await client.aclose()


@pytest.mark.asyncio
async def test_open_circuit_fails_fast():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("must not be called")

    client = _client(handler)
    for _ in range(client.circuit.failure_threshold):
        client.circuit.record_failure()

    with pytest.raises(CircuitOpenError):
        await client.get("https://api.example.test/x")
    await client.aclose()


def test_circuit_half_opens_after_recovery_timeout():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
    breaker.record_failure()
    assert breaker.is_open
    assert breaker.can_attempt()
    breaker.record_success()
    assert not breaker.is_open


def test_safe_url_drops_query():
    assert safe_url("https://api.b365api.com/v1/event/view?token=abc&event_id=1") == (
        "https://api.b365api.com/v1/event/view"
    )
