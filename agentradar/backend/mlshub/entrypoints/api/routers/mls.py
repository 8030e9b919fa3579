# mlshub/entrypoints/api/routers/mls.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_gateway, require_api_key
from ....db import get_session
from ....domain.errors import ProviderConfigError, ProviderError, UnknownProviderError
from ....domain.types import SearchCriteria
from ....schemas import (
    PROVIDER_TEST_SUGGESTIONS,
    ProviderAddedOut,
    ProviderCreate,
    ProviderRemovedOut,
    ProviderTestOut,
    ProviderTestIn,
)
from ....service_layer.gateway import ListingGateway
from ....service_layer.provider_store import ProviderConfigStore

log = logging.getLogger(__name__)

router = APIRouter(prefix="/mls", tags=["mls"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validation_message(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


@router.get("/search")
async def search(
    city: str | None = Query(default=None),
    province: str | None = Query(default=None),
    min_price: float | None = Query(default=None, alias="minPrice"),
    max_price: float | None = Query(default=None, alias="maxPrice"),
    bedrooms: int | None = Query(default=None, ge=0),
    bathrooms: float | None = Query(default=None, ge=0),
    property_type: str | None = Query(default=None, alias="propertyType"),
    max_results: int = Query(default=50, alias="maxResults", ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    provider: str | None = Query(default=None),
    gateway: ListingGateway = Depends(get_gateway),
) -> dict[str, Any]:
    criteria = SearchCriteria(
        city=city,
        province=province,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        property_type=property_type,
        max_results=max_results,
        offset=offset,
    )

    try:
        results = await gateway.search(criteria, provider=provider)
    except UnknownProviderError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "success": True,
        "data": results.to_dict(),
        "criteria": criteria.to_dict(),
        "timestamp": _now_iso(),
    }


@router.get("/listing/{listing_id}")
async def listing_details(
    listing_id: str,
    provider: str | None = Query(default=None),
    gateway: ListingGateway = Depends(get_gateway),
) -> dict[str, Any]:
    try:
        listing = await gateway.get_property_details(listing_id, provider=provider)
    except UnknownProviderError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderError as e:
        log.error("Error fetching listing %s: %s", listing_id, e)
        raise HTTPException(status_code=502, detail=str(e))

    if listing is None:
        raise HTTPException(status_code=404, detail="Property listing not found")
    return {"success": True, "data": listing.to_dict()}


@router.get("/market-stats")
async def market_stats(
    region: str | None = Query(default=None),
    period: str = Query(default="30d"),
    gateway: ListingGateway = Depends(get_gateway),
) -> dict[str, Any]:
    try:
        stats = await gateway.get_market_stats(region, period)
    except ProviderError as e:
        log.error("Error fetching market stats: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "data": stats, "region": region or gateway.primary.region, "period": period}


@router.get("/providers")
def providers_status(gateway: ListingGateway = Depends(get_gateway)) -> dict[str, Any]:
    return {"success": True, "data": gateway.get_providers_status()}


@router.post(
    "/providers/custom",
    status_code=201,
    response_model=ProviderAddedOut,
    dependencies=[Depends(require_api_key)],
)
async def add_custom_provider(
    payload: dict[str, Any] = Body(...),
    gateway: ListingGateway = Depends(get_gateway),
    session: AsyncSession = Depends(get_session),
) -> ProviderAddedOut:
    # Validated by hand so a bad config is a 400 (not FastAPI's default 422).
    try:
        body = ProviderCreate.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"error": _validation_message(e)})

    try:
        cfg = await gateway.add_custom_provider(body.providerId, body.to_config_dict())
    except (ProviderConfigError, ProviderError) as e:
        raise HTTPException(status_code=400, detail={"error": str(e)})

    try:
        await ProviderConfigStore(session).save(body.providerId, cfg)
    except SQLAlchemyError:
        # registry and store must agree; an unsaved provider would not survive a restart
        log.exception("Could not persist custom MLS provider %s, unregistering it", body.providerId)
        await gateway.remove_custom_provider(body.providerId)
        raise HTTPException(status_code=500, detail={"error": "Could not persist provider configuration"})

    return ProviderAddedOut(
        message=f"Custom MLS provider '{body.providerId}' added successfully",
        providerId=body.providerId,
    )


@router.delete(
    "/providers/custom/{provider_id}",
    response_model=ProviderRemovedOut,
    dependencies=[Depends(require_api_key)],
)
async def remove_custom_provider(
    provider_id: str,
    gateway: ListingGateway = Depends(get_gateway),
    session: AsyncSession = Depends(get_session),
) -> ProviderRemovedOut:
    removed = await gateway.remove_custom_provider(provider_id)
    await ProviderConfigStore(session).delete(provider_id)
    return ProviderRemovedOut(
        message=f"Custom MLS provider '{provider_id}' removed successfully",
        removed=removed,
    )


@router.post("/providers/test", response_model=ProviderTestOut, dependencies=[Depends(require_api_key)])
async def test_provider_config(
    payload: dict[str, Any] = Body(...),
    gateway: ListingGateway = Depends(get_gateway),
) -> ProviderTestOut:
    try:
        body = ProviderTestIn.model_validate(payload)
        summary = await gateway.test_provider_config(body.to_config_dict())
    except ValidationError as e:
        error = _validation_message(e)
    except (ProviderConfigError, ProviderError) as e:
        error = str(e)
    else:
        return ProviderTestOut(message="MLS provider configuration test passed", config=summary)

    log.warning("MLS provider test failed: %s", error)
    raise HTTPException(status_code=400, detail={"error": error, "suggestions": PROVIDER_TEST_SUGGESTIONS})


@router.get("/examples/config", dependencies=[Depends(require_api_key)])
def example_configs() -> dict[str, Any]:
    examples = {
        "Generic RETS": {
            "authentication": {"type": "basic", "username": "your_username", "password": "your_password"},
            "mapping": {
                "listingId": "ListingKey",
                "address": "UnparsedAddress",
                "city": "City",
                "price": "ListPrice",
                "bedrooms": "BedroomsTotal",
                "bathrooms": "BathroomsTotalInteger",
                "propertyType": "PropertyType",
                "listingDate": "ListingContractDate",
                "status": "MlsStatus",
                "photos": "Photos",
                "coordinates": {"lat": "Latitude", "lng": "Longitude"},
            },
            "rateLimitRPM": 60,
        },
        "Custom API with Bearer Token": {
            "authentication": {"type": "bearer", "token": "your_bearer_token_here"},
            "mapping": {
                "listingId": "id",
                "address": "street_address",
                "city": "city_name",
                "price": "asking_price",
                "bedrooms": "bedroom_count",
                "bathrooms": "bathroom_count",
                "propertyType": "property_category",
                "listingDate": "date_listed",
                "status": "listing_status",
                "photos": "image_urls",
                "coordinates": {"lat": "geo.lat", "lng": "geo.lng"},
            },
            "rateLimitRPM": 100,
        },
        "API Key Authentication": {
            "authentication": {"type": "apikey", "apiKey": "your_api_key_here"},
            "mapping": {
                "listingId": "listing_number",
                "address": "property_address",
                "city": "location.city",
                "price": "current_price",
                "bedrooms": "specs.bedrooms",
                "bathrooms": "specs.bathrooms",
                "propertyType": "category",
                "listingDate": "created_at",
                "status": "active_status",
                "photos": "media.photos",
            },
            "rateLimitRPM": 120,
        },
        "OAuth Client Credentials": {
            "authentication": {
                "type": "oauth",
                "clientId": "your_client_id",
                "clientSecret": "your_client_secret",
                "tokenUrl": "https://idp.example.com/oauth/token",
            },
            "mapping": {
                "listingId": "ListingKey",
                "address": "UnparsedAddress",
                "city": "City",
                "price": "ListPrice",
                "listingDate": "ListingContractDate",
                "status": "StandardStatus",
            },
            "rateLimitRPM": 60,
        },
    }
    return {
        "success": True,
        "data": examples,
        "message": (
            "Example configurations for common MLS provider types. "
            "Adjust the mapping to your API's response structure."
        ),
    }


@router.get("/health")
async def mls_health(gateway: ListingGateway = Depends(get_gateway)) -> JSONResponse:
    report = await gateway.health_check()
    return JSONResponse(
        status_code=200 if report.overall else 503,
        content={"success": report.overall, "data": report.to_dict(), "timestamp": _now_iso()},
    )
