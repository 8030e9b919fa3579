# mlshub/adapters/clients/provider_http.py
from __future__ import annotations

import logging
from typing import Any

import httpx

from ...domain.errors import ProviderError
from .rate_limit import FixedWindowRateLimiter

log = logging.getLogger(__name__)


def build_client(
    *,
    base_url: str,
    headers: dict[str, str],
    timeout_ms: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """One long-lived client per provider; the timeout applies to each call."""
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        timeout=httpx.Timeout(float(timeout_ms) / 1000.0),
        transport=transport,
    )


async def provider_request(
    client: httpx.AsyncClient,
    limiter: FixedWindowRateLimiter,
    method: str,
    url: str,
    *,
    provider_id: str,
    operation: str,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
    data: Any | None = None,
) -> httpx.Response:
    """
    Single rate-limited call. No retries: a failure is raised as ProviderError
    and the gateway decides how to degrade.
    """
    await limiter.acquire(provider_id)

    try:
        resp = await client.request(method, url, headers=headers, params=params, json=json, data=data)
    except httpx.TimeoutException as e:
        log.error("%s %s timed out: %s %s", provider_id, operation, method, url)
        raise ProviderError(provider_id, operation, f"timeout ({type(e).__name__})") from e
    except httpx.HTTPError as e:
        log.error("%s %s request error: %s: %s", provider_id, operation, type(e).__name__, e)
        raise ProviderError(provider_id, operation, f"{type(e).__name__}: {e}") from e

    if resp.status_code >= 400:
        level = logging.DEBUG if resp.status_code == 404 else logging.ERROR
        log.log(level, "%s %s HTTP %s: %s", provider_id, operation, resp.status_code, resp.text[:200])
        raise ProviderError(
            provider_id,
            operation,
            f"HTTP {resp.status_code} {resp.reason_phrase}".strip(),
            status_code=resp.status_code,
        )

    log.debug("%s %s ok: %s %s", provider_id, operation, method, resp.request.url)
    return resp


def json_body(resp: httpx.Response, *, provider_id: str, operation: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise ProviderError(provider_id, operation, "response is not valid JSON") from e
