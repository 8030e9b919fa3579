# mlshub/service_layer/gateway.py
"""
Listing aggregation gateway: the primary Repliers client plus any number of
bring-your-own providers, each behind its own rate-limit window.

Provider lifecycle:

    testing -> active | rejected
    active  -> unhealthy   (failed health probe, still registered)
    active | unhealthy -> removed   (explicit removal only)

Fan-out (search / health) always iterates a snapshot of the registry taken
before the first await, so a concurrent add/remove never changes the set of
providers a running fan-out is working on. A removed or replaced provider
keeps its HTTP client open until the last call already using it returns.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from ..adapters.cache import ListingCache
from ..adapters.clients.custom_mls import CustomMLSClient
from ..adapters.clients.rate_limit import FixedWindowRateLimiter
from ..adapters.clients.repliers import RepliersClient
from ..config import settings
from ..domain.errors import ProviderConfigError, UnknownProviderError
from ..domain.provider_config import CustomMLSProviderConfig
from ..domain.types import (
    AggregatedResults,
    HealthReport,
    PropertyListing,
    ProviderResults,
    ProviderState,
    SearchCriteria,
)

log = logging.getLogger(__name__)

TEST_PROVIDER_ID = "test"

ClientFactory = Callable[[str, CustomMLSProviderConfig], CustomMLSClient]


@dataclass
class ProviderEntry:
    client: CustomMLSClient
    config: CustomMLSProviderConfig
    state: ProviderState = ProviderState.active
    in_flight: int = 0
    closed: bool = False

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self.client.aclose()

    async def retire(self) -> None:
        """Removed providers keep their client open until in-flight calls finish."""
        self.state = ProviderState.removed
        if self.in_flight == 0:
            await self.close()

    async def release(self) -> None:
        self.in_flight -= 1
        if self.in_flight == 0 and self.state is ProviderState.removed:
            await self.close()


def _unwrap(result: Any, *, provider_id: str, what: str) -> Any:
    """gather(..., return_exceptions=True) result -> value, or None on failure."""
    if isinstance(result, BaseException):
        if not isinstance(result, Exception):
            raise result
        log.error("%s %s failed: %s", provider_id, what, result)
        return None
    return result


class ListingGateway:
    def __init__(
        self,
        *,
        primary: RepliersClient,
        cache: ListingCache,
        limiter: FixedWindowRateLimiter,
        clock: Callable[[], float] = time.monotonic,
        client_factory: ClientFactory | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        default_rpm: int | None = None,
        default_timeout_ms: int | None = None,
    ) -> None:
        self.primary = primary
        self.cache = cache
        self.limiter = limiter
        self._clock = clock
        self._transport = transport
        self._client_factory = client_factory or self._default_client
        self.default_rpm = int(default_rpm or settings.CUSTOM_PROVIDER_DEFAULT_RPM)
        self.default_timeout_ms = int(default_timeout_ms or settings.CUSTOM_PROVIDER_DEFAULT_TIMEOUT_MS)

        self._registry: dict[str, ProviderEntry] = {}

    @classmethod
    def from_settings(
        cls,
        cache: ListingCache,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ListingGateway":
        limiter = FixedWindowRateLimiter()
        primary = RepliersClient(cache=cache, limiter=limiter, transport=transport)
        return cls(primary=primary, cache=cache, limiter=limiter, transport=transport)

    def _default_client(self, provider_id: str, config: CustomMLSProviderConfig) -> CustomMLSClient:
        return CustomMLSClient(
            provider_id,
            config,
            cache=self.cache,
            limiter=self.limiter,
            clock=self._clock,
            transport=self._transport,
        )

    # -----------------------------
    # Registry
    # -----------------------------
    def build_config(self, config: CustomMLSProviderConfig | dict[str, Any]) -> CustomMLSProviderConfig:
        if isinstance(config, CustomMLSProviderConfig):
            return config
        return CustomMLSProviderConfig.from_dict(
            config,
            default_rpm=self.default_rpm,
            default_timeout_ms=self.default_timeout_ms,
        )

    def registered_ids(self) -> list[str]:
        return list(self._registry.keys())

    def provider_state(self, provider_id: str) -> ProviderState | None:
        entry = self._registry.get(provider_id)
        return entry.state if entry else None

    def provider_configs(self) -> dict[str, CustomMLSProviderConfig]:
        return {provider_id: entry.config for provider_id, entry in self._snapshot()}

    def __len__(self) -> int:
        return len(self._registry)

    def _snapshot(self) -> list[tuple[str, ProviderEntry]]:
        return list(self._registry.items())

    @asynccontextmanager
    async def _leased(
        self, entries: list[tuple[str, ProviderEntry]]
    ) -> AsyncIterator[list[tuple[str, ProviderEntry]]]:
        """Pin each entry's client open for the duration of a call against it."""
        for _, entry in entries:
            entry.in_flight += 1
        try:
            yield entries
        finally:
            for _, entry in entries:
                await entry.release()

    def _entry(self, provider_id: str) -> ProviderEntry:
        entry = self._registry.get(provider_id)
        if entry is None:
            raise UnknownProviderError(provider_id)
        return entry

    async def add_custom_provider(
        self,
        provider_id: str,
        config: CustomMLSProviderConfig | dict[str, Any],
    ) -> CustomMLSProviderConfig:
        """
        Register only after a successful connection test. On any failure
        nothing is registered and the original error propagates.
        Re-adding an existing id replaces it once the new config tests green.
        """
        provider_id = (provider_id or "").strip()
        if not provider_id:
            raise ProviderConfigError("providerId is required")
        if provider_id in (self.primary.provider_id, TEST_PROVIDER_ID):
            raise ProviderConfigError(f"providerId '{provider_id}' is reserved")

        cfg = self.build_config(config)
        client = self._client_factory(provider_id, cfg)

        log.info("Testing custom MLS provider %s (%s)", provider_id, cfg.endpoint)
        try:
            await client.test_connection()
        except Exception as e:
            log.error("Failed to add custom MLS provider %s: %s", provider_id, e)
            await client.aclose()
            raise

        previous = self._registry.get(provider_id)
        self._registry[provider_id] = ProviderEntry(client=client, config=cfg, state=ProviderState.active)
        self.limiter.register(provider_id, cfg.rate_limit_rpm)
        if previous is not None:
            await previous.retire()

        log.info("Added custom MLS provider: %s (rpm=%s)", provider_id, cfg.rate_limit_rpm)
        return cfg

    async def test_provider_config(self, config: CustomMLSProviderConfig | dict[str, Any]) -> dict[str, Any]:
        """Dry-run registration: build, connect, discard."""
        cfg = self.build_config(config)
        client = self._client_factory(TEST_PROVIDER_ID, cfg)
        try:
            await client.test_connection()
        finally:
            await client.aclose()

        return {
            "endpoint": cfg.endpoint,
            "authType": cfg.authentication.type,
            "mappingFields": len(cfg.mapping.paths) + (1 if cfg.mapping.has_coordinates else 0),
        }

    async def remove_custom_provider(self, provider_id: str) -> bool:
        """Idempotent. Returns whether something was actually removed."""
        entry = self._registry.pop(provider_id, None)
        self.limiter.unregister(provider_id)
        if entry is None:
            return False

        await entry.retire()
        log.info("Removed custom MLS provider: %s", provider_id)
        return True

    # -----------------------------
    # Search
    # -----------------------------
    async def search_all_providers(self, criteria: SearchCriteria) -> AggregatedResults:
        """
        Primary + every custom provider, concurrently. A failing provider
        contributes [] under its key; this never raises.
        """
        async with self._leased(self._snapshot()) as entries:
            results = await asyncio.gather(
                self.primary.search_properties(criteria),
                *(entry.client.search_properties(criteria) for _, entry in entries),
                return_exceptions=True,
            )

        out = AggregatedResults()
        out.primary = _unwrap(results[0], provider_id=self.primary.provider_id, what="search") or []
        for (provider_id, _), res in zip(entries, results[1:]):
            out.custom[provider_id] = _unwrap(res, provider_id=provider_id, what="search") or []

        out.total = len(out.primary) + sum(len(rows) for rows in out.custom.values())
        log.info("MLS search across %d provider(s): %d results", 1 + len(entries), out.total)
        return out

    async def _search_one(self, provider_id: str, search: Awaitable[list[PropertyListing]]) -> ProviderResults:
        try:
            listings = await search
        except Exception as e:
            log.error("%s search failed: %s", provider_id, e)
            listings = []
        return ProviderResults(provider=provider_id, listings=listings)

    async def search(
        self,
        criteria: SearchCriteria,
        provider: str | None = None,
    ) -> AggregatedResults | ProviderResults:
        """`provider` restricts the search to one provider instead of the full fan-out."""
        if not provider:
            return await self.search_all_providers(criteria)
        if provider == self.primary.provider_id:
            return await self._search_one(provider, self.primary.search_properties(criteria))
        entry = self._entry(provider)
        async with self._leased([(provider, entry)]):
            return await self._search_one(provider, entry.client.search_properties(criteria))

    async def get_property_details(self, listing_id: str, provider: str | None = None) -> PropertyListing | None:
        if not provider or provider == self.primary.provider_id:
            return await self.primary.get_property_details(listing_id)
        entry = self._entry(provider)
        async with self._leased([(provider, entry)]):
            return await entry.client.get_property_details(listing_id)

    async def get_market_stats(self, region: str | None = None, period: str = "30d") -> Any:
        return await self.primary.get_market_stats(region, period)

    # -----------------------------
    # Status / health
    # -----------------------------
    def get_providers_status(self) -> dict[str, Any]:
        return {
            "primary": self.primary.status(),
            "custom": {
                provider_id: {
                    "status": "active" if entry.client.is_healthy() else "error",
                    "name": entry.client.name,
                    "endpoint": entry.client.endpoint,
                }
                for provider_id, entry in self._snapshot()
            },
        }

    async def health_check(self) -> HealthReport:
        """
        Probes the primary and re-probes every custom provider (which also
        refreshes their 5-minute health window). Healthy if ANY provider is.
        """
        async with self._leased(self._snapshot()) as entries:
            results = await asyncio.gather(
                self.primary.health_check(),
                *(entry.client.health_check() for _, entry in entries),
                return_exceptions=True,
            )

        primary_ok = bool(_unwrap(results[0], provider_id=self.primary.provider_id, what="health check"))
        custom: dict[str, bool] = {}
        for (provider_id, entry), res in zip(entries, results[1:]):
            ok = bool(_unwrap(res, provider_id=provider_id, what="health check"))
            custom[provider_id] = ok
            if entry.state in (ProviderState.active, ProviderState.unhealthy):
                entry.state = ProviderState.active if ok else ProviderState.unhealthy

        overall = primary_ok or any(custom.values())
        if not overall:
            log.error("MLS health: no provider is healthy")
        return HealthReport(primary=primary_ok, custom=custom, overall=overall)

    async def aclose(self) -> None:
        for _, entry in self._snapshot():
            await entry.close()
        await self.primary.aclose()
