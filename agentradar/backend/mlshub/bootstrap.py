# mlshub/bootstrap.py
"""Wiring shared by the API process and the standalone scheduler."""
from __future__ import annotations

import logging

import httpx

from .adapters.cache import InMemoryCache, ListingCache, SqlCache
from .config import settings
from .db import AsyncSessionLocal, async_session, create_tables
from .service_layer.gateway import ListingGateway
from .service_layer.provider_store import ProviderConfigStore, restore_providers

log = logging.getLogger(__name__)


def build_cache(backend: str | None = None) -> ListingCache:
    backend = (backend or settings.CACHE_BACKEND).strip().lower()
    if backend == "memory":
        return InMemoryCache()
    if backend == "sql":
        return SqlCache(AsyncSessionLocal)
    raise ValueError(f"Unknown CACHE_BACKEND={backend!r} (expected memory|sql)")


async def build_gateway(
    cache: ListingCache | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    restore: bool = True,
) -> ListingGateway:
    await create_tables()
    gateway = ListingGateway.from_settings(cache if cache is not None else build_cache(), transport=transport)

    if restore:
        async with async_session() as session:
            await restore_providers(gateway, ProviderConfigStore(session))

    log.info("MLS gateway ready (cache=%s, custom providers=%d)", type(gateway.cache).__name__, len(gateway))
    return gateway
