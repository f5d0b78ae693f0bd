from __future__ import annotations

"""Async HTTP helpers shared by the upstream clients.

Thin layer over httpx that turns transport problems into service errors:
timeouts become ServiceUnavailable, any other transport failure or an
unparseable body becomes ExternalApiError. Status handling stays with each
client because the meaning of 404/429 differs per upstream. No retries here;
backoff belongs to whoever calls the API.
"""
import logging
from typing import Any, Optional

import httpx

from currency_api.core.errors import ExternalApiError, ServiceUnavailable

logger = logging.getLogger("currency_api.http")


def make_async_client(*, timeout: float = 30.0) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=timeout),
        headers={"Accept": "application/json"},
        follow_redirects=True,
    )


async def send_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    service: str,
    params: Optional[dict] = None,
) -> httpx.Response:
    try:
        return await client.get(url, params=params)
    except httpx.TimeoutException as e:
        logger.error("%s request timed out: %s", service, e)
        raise ServiceUnavailable(f"{service} request timed out") from e
    except httpx.HTTPError as e:
        logger.error("%s request failed: %s", service, e)
        raise ExternalApiError(f"{service} request failed: {e}") from e


def read_json(response: httpx.Response, *, service: str) -> Any:
    try:
        return response.json()
    except ValueError as e:  # JSON decode
        logger.error("failed to parse %s response: %s", service, e)
        raise ExternalApiError(f"Failed to parse {service} data: {e}") from e
