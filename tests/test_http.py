"""Tests for the retrying fetch helper."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from app.services.http import fetch_with_retry

URL = "https://api.example.com/movie/popular"


@pytest.mark.anyio("asyncio")
async def test_fetch_returns_successful_response_without_retry() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"results": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, URL, params={"page": 1}, retry_delay=0)

    assert response.json() == {"results": []}
    assert len(requests) == 1
    assert requests[0].headers["accept"] == "application/json"
    assert requests[0].url.params["page"] == "1"


@pytest.mark.anyio("asyncio")
async def test_fetch_retries_error_status_until_success() -> None:
    """Non-success statuses are retried like transport errors."""

    statuses = iter([503, 500, 200])
    attempts = 0

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        return httpx.Response(next(statuses), json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, URL, retries=2, retry_delay=0)

    assert response.status_code == 200
    assert attempts == 3


@pytest.mark.anyio("asyncio")
async def test_fetch_raises_last_error_once_retries_are_exhausted() -> None:
    attempts = 0

    def handler(_: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        return httpx.Response(502, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await fetch_with_retry(client, URL, retry_delay=0)

    # Default budget is two retries, three attempts in total.
    assert attempts == 3


@pytest.mark.anyio("asyncio")
async def test_fetch_retries_transport_errors() -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        response = await fetch_with_retry(client, URL, retries=1, retry_delay=0)

    assert response.json() == {"ok": True}
    assert attempts == 2


@pytest.mark.anyio("asyncio")
async def test_fetch_times_out_each_attempt() -> None:
    attempts = 0

    async def handler(_: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        await asyncio.sleep(5)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(asyncio.TimeoutError):
            await fetch_with_retry(client, URL, retries=1, timeout=0.05, retry_delay=0)

    assert attempts == 2


@pytest.mark.anyio("asyncio")
async def test_fetch_does_not_retry_when_caller_cancels() -> None:
    attempts = 0

    async def handler(_: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        await asyncio.sleep(5)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        task = asyncio.create_task(
            fetch_with_retry(client, URL, retries=2, timeout=2.0, retry_delay=0)
        )
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert attempts == 1
