"""Resilient HTTP GET helper shared by the provider clients."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 5.0
RETRY_DELAY_SECONDS = 0.5
DEFAULT_RETRIES = 2

# Failures that count as transport errors for retry and tier fallback purposes.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (httpx.HTTPError, asyncio.TimeoutError)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    retries: int = DEFAULT_RETRIES,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    retry_delay: float = RETRY_DELAY_SECONDS,
) -> httpx.Response:
    """Issue a GET request with a per-attempt deadline and bounded retries.

    Each attempt is cancelled after ``timeout`` seconds and a non-success
    status is treated like a transport failure. Failed attempts are retried
    after ``retry_delay`` while ``retries`` remain; once the budget is spent
    the last error is raised to the caller. Cancellation of the calling task
    is never retried.
    """

    remaining = max(0, retries)
    while True:
        try:
            response = await asyncio.wait_for(
                client.get(url, params=params, headers={"Accept": "application/json"}),
                timeout,
            )
            response.raise_for_status()
            return response
        except TRANSPORT_ERRORS as exc:
            if remaining <= 0:
                raise
            remaining -= 1
            logger.info(
                "Request to %s failed (%s). Retrying in %.1fs (%d retries left)",
                url,
                _describe(exc),
                retry_delay,
                remaining,
            )
            await asyncio.sleep(retry_delay)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    return exc.__class__.__name__
