# mlshub/adapters/clients/custom_mls.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from ...domain.errors import ProviderConnectionError, ProviderError
from ...domain.parsing import days_since, to_date, to_float, to_int, to_str, to_str_list
from ...domain.provider_config import CustomMLSProviderConfig
from ...domain.types import Coordinates, PropertyListing, SearchCriteria
from ..cache import ListingCache
from .auth import AuthHeaders
from .provider_http import build_client, json_body, provider_request
from .rate_limit import FixedWindowRateLimiter

log = logging.getLogger(__name__)

SEARCH_TTL_S = 15 * 60
LISTING_TTL_S = 60 * 60

# A provider counts as healthy only this long after its last good probe.
HEALTH_WINDOW_S = 5 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _extract_rows(data: Any) -> list[dict[str, Any]]:
    """
    Accept either:
      - list[dict]
      - {"listings" | "results" | "data" | "items": list[dict]}
    """
    rows: Any = data
    if isinstance(data, dict):
        rows = data.get("listings") or data.get("results") or data.get("data") or data.get("items") or []
    if not isinstance(rows, list):
        return []
    return [x for x in rows if isinstance(x, dict)]


def _criteria_params(criteria: SearchCriteria) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if criteria.city:
        params["city"] = criteria.city
    if criteria.province:
        params["province"] = criteria.province
    if criteria.min_price:
        params["min_price"] = criteria.min_price
    if criteria.max_price:
        params["max_price"] = criteria.max_price
    if criteria.bedrooms:
        params["bedrooms"] = criteria.bedrooms
    if criteria.bathrooms:
        params["bathrooms"] = criteria.bathrooms
    if criteria.property_type:
        params["property_type"] = criteria.property_type
    if criteria.max_results:
        params["limit"] = criteria.max_results
    if criteria.offset:
        params["offset"] = criteria.offset
    return params


class CustomMLSClient:
    """
    Bring-your-own MLS provider driven by a CustomMLSProviderConfig.

    Health is time-boxed: is_healthy() is only true within 5 minutes of the
    last successful probe (test_connection or health_check), even if nothing
    has failed since.
    """

    def __init__(
        self,
        provider_id: str,
        config: CustomMLSProviderConfig,
        *,
        cache: ListingCache,
        limiter: FixedWindowRateLimiter,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.config = config
        self._cache = cache
        self._limiter = limiter
        self._clock = clock
        self._now = now

        self.auth = AuthHeaders(config.authentication, provider_id=provider_id, endpoint=config.endpoint)
        self._client = build_client(
            base_url=config.endpoint,
            headers={
                "Accept": "application/json",
                "User-Agent": f"AgentRadar-Custom-MLS/{provider_id}/1.0",
                **self.auth.static_headers,
            },
            timeout_ms=config.timeout_ms,
            transport=transport,
        )

        self.healthy = False
        self.last_health_check: float | None = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    async def _send(
        self, url: str, *, operation: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        headers = await self.auth.request_headers(self._client, self._limiter)
        return await provider_request(
            self._client,
            self._limiter,
            "GET",
            url,
            provider_id=self.provider_id,
            operation=operation,
            headers=headers or None,
            params=params,
        )

    async def _get(self, url: str, *, operation: str, params: dict[str, Any] | None = None) -> Any:
        resp = await self._send(url, operation=operation, params=params)
        return json_body(resp, provider_id=self.provider_id, operation=operation)

    # -----------------------------
    # Mapping
    # -----------------------------
    def _field(self, item: dict[str, Any], name: str, coerce: Callable[[Any], Any]) -> Any:
        try:
            return coerce(self.config.mapping.get(item, name))
        except Exception as e:
            log.debug("%s: mapping.%s unreadable (%s), leaving it unset", self.provider_id, name, e)
            return None

    def map_listing(self, item: dict[str, Any], *, now: datetime | None = None) -> PropertyListing:
        """
        Each mapped field is resolved on its own: an unreadable field becomes
        None instead of failing the whole listing.
        """
        now = now or self._now()
        mapping = self.config.mapping

        listing_date = self._field(item, "listingDate", to_date)
        dom = self._field(item, "daysOnMarket", to_int)
        if dom is None and listing_date is not None:
            dom = days_since(listing_date, now)

        coordinates = None
        if mapping.has_coordinates:
            try:
                coordinates = Coordinates(
                    lat=to_float(mapping.lat.resolve(item)),  # type: ignore[union-attr]
                    lng=to_float(mapping.lng.resolve(item)),  # type: ignore[union-attr]
                )
            except Exception as e:
                log.debug("%s: coordinates unreadable (%s)", self.provider_id, e)

        return PropertyListing(
            id=self._field(item, "listingId", to_str),
            provider=self.provider_id,
            mls_number=self._field(item, "mlsNumber", to_str),
            address=self._field(item, "address", to_str),
            city=self._field(item, "city", to_str),
            province=self._field(item, "province", to_str) or self.config.default_province,
            postal_code=self._field(item, "postalCode", to_str),
            coordinates=coordinates,
            price=self._field(item, "price", to_float),
            property_type=self._field(item, "propertyType", to_str),
            bedrooms=self._field(item, "bedrooms", to_int),
            bathrooms=self._field(item, "bathrooms", to_float),
            square_footage=self._field(item, "squareFootage", to_int),
            listing_date=listing_date,
            days_on_market=dom,
            status=self._field(item, "status", to_str),
            last_updated=now,
            photos=self._field(item, "photos", to_str_list) or [],
            description=self._field(item, "description", to_str),
        )

    # -----------------------------
    # Operations
    # -----------------------------
    async def search_properties(self, criteria: SearchCriteria) -> list[PropertyListing]:
        cache_key = f"{self.provider_id}:search:{criteria.cache_key()}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return [PropertyListing.from_dict(x) for x in cached]

        data = await self._get(self.config.search_path, operation="search", params=_criteria_params(criteria))
        now = self._now()
        listings = [self.map_listing(x, now=now) for x in _extract_rows(data)]

        await self._cache.set(cache_key, [x.to_dict() for x in listings], SEARCH_TTL_S)
        log.info("Found %d listings via custom provider %s", len(listings), self.provider_id)
        return listings

    async def get_property_details(self, listing_id: str) -> PropertyListing | None:
        cache_key = f"{self.provider_id}:listing:{listing_id}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return PropertyListing.from_dict(cached)

        try:
            data = await self._get(self.config.listing_path.format(id=listing_id), operation="details")
        except ProviderError as e:
            if e.is_not_found:
                return None
            raise

        if isinstance(data, dict) and not self.config.mapping.get(data, "listingId"):
            # some APIs wrap single records: {"listing": {...}} / {"data": {...}}
            for key in ("listing", "data", "result"):
                inner = data.get(key)
                if isinstance(inner, dict):
                    data = inner
                    break
        if not isinstance(data, dict):
            raise ProviderError(self.provider_id, "details", "listing payload is not an object")

        listing = self.map_listing(data)
        await self._cache.set(cache_key, listing.to_dict(), LISTING_TTL_S)
        return listing

    async def get_market_stats(self, region: str | None = None, period: str = "30d") -> Any:
        # No market-stats contract for bring-your-own providers.
        return None

    async def test_connection(self) -> None:
        """Minimal bounded search. Raises ProviderConnectionError on failure."""
        try:
            await self._get(self.config.search_path, operation="connection test", params={"limit": 1})
        except ProviderError as e:
            self.healthy = False
            raise ProviderConnectionError(self.provider_id, e.message, status_code=e.status_code) from e
        self._mark_healthy()

    async def health_check(self) -> bool:
        """Active probe; refreshes the health window. Never raises."""
        try:
            if self.config.health_path:
                # status code only; the body is not parsed
                await self._send(self.config.health_path, operation="health")
            else:
                await self._get(self.config.search_path, operation="health", params={"limit": 1})
        except ProviderError as e:
            log.warning("Custom provider %s health check failed: %s", self.provider_id, e)
            self.healthy = False
            return False
        self._mark_healthy()
        return True

    def _mark_healthy(self) -> None:
        self.healthy = True
        self.last_health_check = self._clock()

    def is_healthy(self) -> bool:
        if not self.healthy or self.last_health_check is None:
            return False
        return (self._clock() - self.last_health_check) < HEALTH_WINDOW_S

    async def aclose(self) -> None:
        await self._client.aclose()
