# mlshub/domain/types.py
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from .parsing import to_date, to_float, to_int, to_str, to_str_list


class ProviderState(str, Enum):
    testing = "testing"
    active = "active"
    unhealthy = "unhealthy"
    rejected = "rejected"
    removed = "removed"


@dataclass(frozen=True)
class Coordinates:
    lat: float | None
    lng: float | None

    def to_dict(self) -> dict[str, float | None]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class PropertyListing:
    """Provider-agnostic listing. Every adapter maps into this shape."""

    id: str | None
    provider: str

    address: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    coordinates: Coordinates | None = None

    price: float | None = None
    property_type: str | None = None
    bedrooms: int | None = None
    bathrooms: float | None = None
    square_footage: int | None = None

    listing_date: datetime | None = None
    days_on_market: int | None = None
    status: str | None = None
    last_updated: datetime | None = None

    photos: list[str] = field(default_factory=list)
    description: str | None = None
    mls_number: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "mlsNumber": self.mls_number,
            "address": self.address,
            "city": self.city,
            "province": self.province,
            "postalCode": self.postal_code,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "price": self.price,
            "propertyType": self.property_type,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "squareFootage": self.square_footage,
            "listingDate": self.listing_date.isoformat() if self.listing_date else None,
            "daysOnMarket": self.days_on_market,
            "status": self.status,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            "photos": list(self.photos),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PropertyListing":
        """Inverse of to_dict (cache reads)."""
        coords = d.get("coordinates")
        return cls(
            id=to_str(d.get("id")),
            provider=str(d.get("provider") or ""),
            mls_number=to_str(d.get("mlsNumber")),
            address=to_str(d.get("address")),
            city=to_str(d.get("city")),
            province=to_str(d.get("province")),
            postal_code=to_str(d.get("postalCode")),
            coordinates=(
                Coordinates(lat=to_float(coords.get("lat")), lng=to_float(coords.get("lng")))
                if isinstance(coords, dict)
                else None
            ),
            price=to_float(d.get("price")),
            property_type=to_str(d.get("propertyType")),
            bedrooms=to_int(d.get("bedrooms")),
            bathrooms=to_float(d.get("bathrooms")),
            square_footage=to_int(d.get("squareFootage")),
            listing_date=to_date(d.get("listingDate")),
            days_on_market=to_int(d.get("daysOnMarket")),
            status=to_str(d.get("status")),
            last_updated=to_date(d.get("lastUpdated")),
            photos=to_str_list(d.get("photos")),
            description=to_str(d.get("description")),
        )


# snake_case attribute -> camelCase wire name
_CRITERIA_WIRE = {
    "city": "city",
    "province": "province",
    "min_price": "minPrice",
    "max_price": "maxPrice",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "property_type": "propertyType",
    "max_results": "maxResults",
    "offset": "offset",
}


@dataclass(frozen=True)
class SearchCriteria:
    city: str | None = None
    province: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    bedrooms: int | None = None
    bathrooms: float | None = None
    property_type: str | None = None
    max_results: int = 50
    offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        """camelCase, unset filters dropped."""
        out: dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if v is None:
                continue
            out[_CRITERIA_WIRE[f.name]] = v
        return out

    def cache_key(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), default=str)


@dataclass
class AggregatedResults:
    primary: list[PropertyListing] = field(default_factory=list)
    custom: dict[str, list[PropertyListing]] = field(default_factory=dict)
    total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary": [x.to_dict() for x in self.primary],
            "custom": {pid: [x.to_dict() for x in rows] for pid, rows in self.custom.items()},
            "total": self.total,
        }


@dataclass
class ProviderResults:
    """Single-provider search (the `provider=` selector on /mls/search)."""

    provider: str
    listings: list[PropertyListing] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.listings)

    def to_dict(self) -> dict[str, Any]:
        return {"listings": [x.to_dict() for x in self.listings], "total": self.total, "provider": self.provider}


@dataclass(frozen=True)
class HealthReport:
    primary: bool
    custom: dict[str, bool]
    overall: bool

    def to_dict(self) -> dict[str, Any]:
        return {"primary": self.primary, "customProviders": dict(self.custom), "overall": self.overall}
