# tests/test_repliers_client.py
from datetime import datetime, timezone

import httpx
import pytest

from mlshub.adapters.clients.repliers import RepliersClient, map_repliers_listing
from mlshub.domain.errors import ProviderError
from mlshub.domain.types import SearchCriteria

from helpers import Recorder, request_json

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

RAW_LISTING = {
    "id": "R1",
    "mls_number": "W123",
    "street_address": "1 King St W",
    "city": "Toronto",
    "zip_code": "M5H 1A1",
    "price": "899,000",
    "bedrooms": 2,
    "bathrooms": 2,
    "type": "Condo",
    "listed_date": "2024-05-30T00:00:00Z",
    "images": ["a.jpg", "b.jpg"],
    "location": {"latitude": 43.65, "longitude": -79.38},
}


def _client(cache, limiter, handler, **kw) -> tuple[RepliersClient, Recorder]:
    rec = Recorder(handler)
    client = RepliersClient(
        cache=cache,
        limiter=limiter,
        api_key="secret",
        endpoint="https://api.repliers.test/v1",
        region="GTA",
        rate_limit_rpm=100,
        transport=rec.transport,
        now=lambda: NOW,
        **kw,
    )
    return client, rec


def test_map_repliers_listing_uses_fallback_keys_and_defaults():
    listing = map_repliers_listing(RAW_LISTING, now=NOW)

    assert listing.id == "R1"
    assert listing.provider == "repliers"
    assert listing.address == "1 King St W"
    assert listing.province == "ON"
    assert listing.postal_code == "M5H 1A1"
    assert listing.price == 899000.0
    assert listing.property_type == "Condo"
    assert listing.status == "Active"
    assert listing.days_on_market == 3
    assert listing.photos == ["a.jpg", "b.jpg"]
    assert listing.coordinates.lat == 43.65
    assert listing.last_updated == NOW


def test_map_repliers_listing_numeric_defaults():
    listing = map_repliers_listing({"listing_id": "R2"}, now=NOW)
    assert listing.id == "R2"
    assert listing.price == 0.0
    assert listing.bedrooms == 0
    assert listing.bathrooms == 0.0
    assert listing.square_footage is None
    assert listing.days_on_market == 0
    assert listing.photos == []
    assert listing.coordinates is None


@pytest.mark.asyncio
async def test_search_posts_region_and_criteria(cache, limiter):
    client, rec = _client(cache, limiter, lambda r: httpx.Response(200, json={"listings": [RAW_LISTING]}))

    listings = await client.search_properties(SearchCriteria(city="Toronto", min_price=500000, max_results=10))

    assert [x.id for x in listings] == ["R1"]
    req = rec.requests[0]
    assert req.method == "POST"
    assert req.url.path == "/v1/search"
    assert req.headers["Authorization"] == "Bearer secret"
    body = request_json(req)
    assert body["region"] == "GTA"
    assert body["city"] == "Toronto"
    assert body["minPrice"] == 500000
    assert body["limit"] == 10
    await client.aclose()


@pytest.mark.asyncio
async def test_identical_searches_within_ttl_issue_one_call(cache, limiter, clock):
    client, rec = _client(cache, limiter, lambda r: httpx.Response(200, json={"listings": [RAW_LISTING]}))
    criteria = SearchCriteria(city="Toronto")

    first = await client.search_properties(criteria)
    second = await client.search_properties(criteria)

    assert rec.count("/v1/search") == 1
    assert [x.to_dict() for x in first] == [x.to_dict() for x in second]

    # past the 15 minute TTL it goes back to the network
    clock.advance(15 * 60 + 1)
    await client.search_properties(criteria)
    assert rec.count("/v1/search") == 2
    await client.aclose()


@pytest.mark.asyncio
async def test_empty_result_is_cached_too(cache, limiter):
    client, rec = _client(cache, limiter, lambda r: httpx.Response(200, json={"listings": []}))

    assert await client.search_properties(SearchCriteria()) == []
    assert await client.search_properties(SearchCriteria()) == []
    assert rec.count("/v1/search") == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_details_404_returns_none(cache, limiter):
    client, rec = _client(cache, limiter, lambda r: httpx.Response(404, json={"error": "not found"}))

    assert await client.get_property_details("nonexistent-123") is None
    assert rec.paths() == ["/v1/listings/nonexistent-123"]
    await client.aclose()


@pytest.mark.asyncio
async def test_details_server_error_raises(cache, limiter):
    client, _ = _client(cache, limiter, lambda r: httpx.Response(500, text="boom"))

    with pytest.raises(ProviderError) as ei:
        await client.get_property_details("R1")
    assert ei.value.operation == "details"
    assert ei.value.status_code == 500
    await client.aclose()


@pytest.mark.asyncio
async def test_search_network_error_raises_provider_error(cache, limiter):
    def handler(request):
        raise httpx.ConnectError("dns failure", request=request)

    client, _ = _client(cache, limiter, handler)
    with pytest.raises(ProviderError, match="repliers search failed"):
        await client.search_properties(SearchCriteria())
    await client.aclose()


@pytest.mark.asyncio
async def test_market_stats_defaults_region_and_caches(cache, limiter):
    client, rec = _client(cache, limiter, lambda r: httpx.Response(200, json={"medianPrice": 1000000}))

    assert await client.get_market_stats() == {"medianPrice": 1000000}
    assert await client.get_market_stats() == {"medianPrice": 1000000}

    assert rec.count("/v1/market-stats") == 1
    assert rec.requests[0].url.params["region"] == "GTA"
    assert rec.requests[0].url.params["period"] == "30d"
    await client.aclose()


@pytest.mark.asyncio
async def test_health_check_never_raises(cache, limiter):
    ok, _ = _client(cache, limiter, lambda r: httpx.Response(200, json={"status": "ok"}))
    down, _ = _client(cache, limiter, lambda r: httpx.Response(503))

    assert await ok.health_check() is True
    assert await down.health_check() is False
    await ok.aclose()
    await down.aclose()


@pytest.mark.asyncio
async def test_registers_its_rate_window(cache, limiter):
    client, _ = _client(cache, limiter, lambda r: httpx.Response(200, json={}))
    assert limiter.snapshot("repliers")["limit"] == 100
    assert client.status() == {"status": "active", "region": "GTA", "rateLimitRPM": 100}
    await client.aclose()
