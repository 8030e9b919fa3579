# mlshub/adapters/clients/repliers.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from ...config import settings
from ...domain.errors import ProviderError
from ...domain.parsing import days_since, get_first, to_date, to_float, to_int, to_str, to_str_list
from ...domain.types import Coordinates, PropertyListing, SearchCriteria
from ..cache import ListingCache
from .provider_http import build_client, json_body, provider_request
from .rate_limit import FixedWindowRateLimiter

log = logging.getLogger(__name__)

PROVIDER_ID = "repliers"

SEARCH_TTL_S = 15 * 60
LISTING_TTL_S = 60 * 60
STATS_TTL_S = 2 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coordinates(item: dict[str, Any]) -> Coordinates | None:
    coords = item.get("coordinates")
    loc = item.get("location")
    if isinstance(coords, dict):
        return Coordinates(lat=to_float(coords.get("lat")), lng=to_float(coords.get("lng")))
    if isinstance(loc, dict):
        return Coordinates(lat=to_float(loc.get("latitude")), lng=to_float(loc.get("longitude")))
    return None


def map_repliers_listing(item: dict[str, Any], *, now: datetime | None = None) -> PropertyListing:
    """Repliers payload -> canonical listing. Missing numerics default to 0."""
    now = now or _utcnow()
    listing_date = to_date(get_first(item, "listing_date", "listed_date"))

    dom = to_int(item.get("days_on_market"))
    if dom is None:
        dom = days_since(listing_date, now)

    return PropertyListing(
        id=to_str(get_first(item, "id", "listing_id")),
        provider=PROVIDER_ID,
        mls_number=to_str(get_first(item, "mls_number", "mls_id")),
        address=to_str(get_first(item, "address", "street_address")),
        city=to_str(item.get("city")),
        province=to_str(get_first(item, "province", "state")) or "ON",
        postal_code=to_str(get_first(item, "postal_code", "zip_code")),
        coordinates=_coordinates(item),
        price=to_float(item.get("price")) or 0.0,
        property_type=to_str(get_first(item, "property_type", "type")),
        bedrooms=to_int(item.get("bedrooms")) or 0,
        bathrooms=to_float(item.get("bathrooms")) or 0.0,
        square_footage=to_int(item.get("square_footage")) or None,
        listing_date=listing_date,
        days_on_market=dom,
        status=to_str(item.get("status")) or "Active",
        last_updated=now,
        photos=to_str_list(get_first(item, "photos", "images")),
        description=to_str(get_first(item, "description", "remarks")),
    )


class RepliersClient:
    """Primary MLS provider (Repliers). Region-scoped search, details, market stats."""

    provider_id = PROVIDER_ID

    def __init__(
        self,
        *,
        cache: ListingCache,
        limiter: FixedWindowRateLimiter,
        api_key: str | None = None,
        endpoint: str | None = None,
        region: str | None = None,
        rate_limit_rpm: int | None = None,
        timeout_ms: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.api_key = api_key if api_key is not None else (settings.REPLIERS_API_KEY or "")
        self.endpoint = (endpoint or settings.REPLIERS_ENDPOINT).rstrip("/")
        self.region = region or settings.REPLIERS_REGION
        self.rate_limit_rpm = int(rate_limit_rpm or settings.REPLIERS_RATE_LIMIT)
        self.timeout_ms = int(timeout_ms or settings.REPLIERS_TIMEOUT_MS)

        self._cache = cache
        self._limiter = limiter
        self._now = now
        self._client = build_client(
            base_url=self.endpoint,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
                "User-Agent": settings.HTTP_USER_AGENT,
            },
            timeout_ms=self.timeout_ms,
            transport=transport,
        )

        self._limiter.register(self.provider_id, self.rate_limit_rpm)
        log.info("Repliers MLS client initialized (region=%s, rpm=%s)", self.region, self.rate_limit_rpm)

    async def _request(self, method: str, url: str, *, operation: str, **kw: Any) -> Any:
        resp = await provider_request(
            self._client,
            self._limiter,
            method,
            url,
            provider_id=self.provider_id,
            operation=operation,
            **kw,
        )
        return json_body(resp, provider_id=self.provider_id, operation=operation)

    async def search_properties(self, criteria: SearchCriteria) -> list[PropertyListing]:
        cache_key = f"{self.provider_id}:search:{criteria.cache_key()}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            log.debug("Returning cached search results for %s", cache_key)
            return [PropertyListing.from_dict(x) for x in cached]

        body = {"region": self.region, **criteria.to_dict(), "limit": criteria.max_results or 50}
        data = await self._request("POST", "/search", operation="search", json=body)

        rows = data.get("listings") if isinstance(data, dict) else data
        if not isinstance(rows, list):
            rows = []

        now = self._now()
        listings = [map_repliers_listing(x, now=now) for x in rows if isinstance(x, dict)]

        await self._cache.set(cache_key, [x.to_dict() for x in listings], SEARCH_TTL_S)
        log.info("Found %d listings via Repliers", len(listings))
        return listings

    async def get_property_details(self, listing_id: str) -> PropertyListing | None:
        cache_key = f"{self.provider_id}:listing:{listing_id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return PropertyListing.from_dict(cached)

        try:
            data = await self._request("GET", f"/listings/{listing_id}", operation="details")
        except ProviderError as e:
            if e.is_not_found:
                return None
            raise

        if not isinstance(data, dict):
            raise ProviderError(self.provider_id, "details", "listing payload is not an object")

        listing = map_repliers_listing(data, now=self._now())
        await self._cache.set(cache_key, listing.to_dict(), LISTING_TTL_S)
        return listing

    async def get_market_stats(self, region: str | None = None, period: str = "30d") -> Any:
        target_region = region or self.region
        cache_key = f"{self.provider_id}:stats:{target_region}:{period}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        stats = await self._request(
            "GET",
            "/market-stats",
            operation="market-stats",
            params={"region": target_region, "period": period},
        )
        await self._cache.set(cache_key, stats, STATS_TTL_S)
        return stats

    async def health_check(self) -> bool:
        try:
            await provider_request(
                self._client,
                self._limiter,
                "GET",
                "/health",
                provider_id=self.provider_id,
                operation="health",
            )
        except ProviderError as e:
            log.error("Repliers health check failed: %s", e)
            return False
        return True

    def status(self) -> dict[str, Any]:
        return {"status": "active", "region": self.region, "rateLimitRPM": self.rate_limit_rpm}

    async def aclose(self) -> None:
        await self._client.aclose()
