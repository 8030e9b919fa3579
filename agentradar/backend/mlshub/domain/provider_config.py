# mlshub/domain/provider_config.py
"""
Bring-your-own MLS provider configuration.

Everything here is validated once, when an admin registers a provider, so a
bad config is rejected up front instead of surfacing as an empty search
result later:

- authentication is one of four variants, each holding only its own fields
- the field mapping is compiled into `FieldPath`s (segment tuples), so the
  dotted strings are never re-split per listing
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union
from urllib.parse import urlparse

from .errors import ProviderConfigError
from .parsing import get_first


# -----------------------------
# Authentication variants
# -----------------------------
@dataclass(frozen=True)
class BearerAuth:
    token: str = field(repr=False)
    type: str = field(default="bearer", init=False)


@dataclass(frozen=True)
class ApiKeyAuth:
    api_key: str = field(repr=False)
    header_name: str = "X-API-Key"
    type: str = field(default="apikey", init=False)


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str = field(repr=False)
    type: str = field(default="basic", init=False)


@dataclass(frozen=True)
class OAuthClientCredentials:
    client_id: str
    client_secret: str = field(repr=False)
    token_url: str | None = None
    scope: str | None = None
    type: str = field(default="oauth", init=False)


AuthConfig = Union[BearerAuth, ApiKeyAuth, BasicAuth, OAuthClientCredentials]

AUTH_TYPES = ("bearer", "apikey", "basic", "oauth")


def _required(raw: dict[str, Any], label: str, *keys: str) -> str:
    v = get_first(raw, *keys)
    if v is None:
        raise ProviderConfigError(f"authentication.{label} is required for type '{raw.get('type')}'")
    return str(v)


def parse_auth(raw: Any) -> AuthConfig:
    if isinstance(raw, (BearerAuth, ApiKeyAuth, BasicAuth, OAuthClientCredentials)):
        return raw
    if not isinstance(raw, dict):
        raise ProviderConfigError("authentication must be an object with a 'type'")

    kind = str(raw.get("type") or "").strip().lower().replace("_", "")
    if kind == "bearer":
        return BearerAuth(token=_required(raw, "token", "token", "accessToken"))
    if kind == "apikey":
        return ApiKeyAuth(
            api_key=_required(raw, "apiKey", "apiKey", "api_key", "key"),
            header_name=str(get_first(raw, "headerName", "header_name") or "X-API-Key"),
        )
    if kind == "basic":
        return BasicAuth(
            username=_required(raw, "username", "username"),
            password=str(get_first(raw, "password") or ""),
        )
    if kind == "oauth":
        return OAuthClientCredentials(
            client_id=_required(raw, "clientId", "clientId", "client_id"),
            client_secret=_required(raw, "clientSecret", "clientSecret", "client_secret"),
            token_url=get_first(raw, "tokenUrl", "token_url"),
            scope=get_first(raw, "scope"),
        )

    raise ProviderConfigError(
        f"Unsupported authentication type: {raw.get('type')!r}. Supported: {', '.join(AUTH_TYPES)}"
    )


def auth_to_dict(auth: AuthConfig) -> dict[str, Any]:
    if isinstance(auth, BearerAuth):
        return {"type": "bearer", "token": auth.token}
    if isinstance(auth, ApiKeyAuth):
        return {"type": "apikey", "apiKey": auth.api_key, "headerName": auth.header_name}
    if isinstance(auth, BasicAuth):
        return {"type": "basic", "username": auth.username, "password": auth.password}
    if isinstance(auth, OAuthClientCredentials):
        return {
            "type": "oauth",
            "clientId": auth.client_id,
            "clientSecret": auth.client_secret,
            "tokenUrl": auth.token_url,
            "scope": auth.scope,
        }
    raise ProviderConfigError(f"Unsupported authentication variant: {type(auth).__name__}")


SECRET_AUTH_KEYS = ("token", "apiKey", "password", "clientSecret")


def redact(v: str | None) -> str | None:
    if not v:
        return v
    if len(v) <= 8:
        return "***"
    return v[:4] + "***" + v[-4:]


# -----------------------------
# Field mapping
# -----------------------------
@dataclass(frozen=True)
class FieldPath:
    """Dotted path into a raw provider payload, split once."""

    segments: tuple[str, ...]

    @classmethod
    def parse(cls, path: Any, *, label: str = "field") -> "FieldPath":
        if not isinstance(path, str) or not path.strip():
            raise ProviderConfigError(f"mapping.{label} must be a non-empty dotted path")
        segments = tuple(p.strip() for p in path.strip().split("."))
        if any(not s for s in segments):
            raise ProviderConfigError(f"mapping.{label} has an empty segment: {path!r}")
        return cls(segments=segments)

    def resolve(self, payload: Any) -> Any:
        """Missing keys (at any depth) resolve to None."""
        cur = payload
        for seg in self.segments:
            if isinstance(cur, dict):
                cur = cur.get(seg)
            elif isinstance(cur, list) and seg.isdigit():
                idx = int(seg)
                cur = cur[idx] if idx < len(cur) else None
            else:
                return None
            if cur is None:
                return None
        return cur

    def __str__(self) -> str:
        return ".".join(self.segments)


MAPPING_FIELDS = (
    "listingId",
    "mlsNumber",
    "address",
    "city",
    "province",
    "postalCode",
    "price",
    "bedrooms",
    "bathrooms",
    "squareFootage",
    "propertyType",
    "listingDate",
    "daysOnMarket",
    "status",
    "photos",
    "description",
)
REQUIRED_MAPPING_FIELDS = ("listingId",)


@dataclass(frozen=True)
class FieldMapping:
    paths: dict[str, FieldPath]
    lat: FieldPath | None = None
    lng: FieldPath | None = None

    @classmethod
    def compile(cls, raw: Any) -> "FieldMapping":
        if not isinstance(raw, dict):
            raise ProviderConfigError("mapping must be an object of field -> dotted path")

        missing = [k for k in REQUIRED_MAPPING_FIELDS if not raw.get(k)]
        if missing:
            raise ProviderConfigError(f"mapping is missing required field(s): {', '.join(missing)}")

        paths: dict[str, FieldPath] = {}
        lat = lng = None
        for key, value in raw.items():
            if key == "coordinates":
                if value is None:
                    continue
                if not isinstance(value, dict) or not value.get("lat") or not value.get("lng"):
                    raise ProviderConfigError("mapping.coordinates needs both 'lat' and 'lng' paths")
                lat = FieldPath.parse(value["lat"], label="coordinates.lat")
                lng = FieldPath.parse(value["lng"], label="coordinates.lng")
                continue
            if key not in MAPPING_FIELDS:
                raise ProviderConfigError(f"mapping.{key} is not a known listing field")
            if value is None:
                continue
            paths[key] = FieldPath.parse(value, label=key)

        return cls(paths=paths, lat=lat, lng=lng)

    def get(self, payload: Any, name: str) -> Any:
        p = self.paths.get(name)
        return p.resolve(payload) if p else None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {k: str(v) for k, v in self.paths.items()}
        if self.has_coordinates:
            out["coordinates"] = {"lat": str(self.lat), "lng": str(self.lng)}
        return out


# -----------------------------
# Provider config
# -----------------------------
def _positive_int(v: Any, default: int, label: str) -> int:
    if v is None or v == "":
        return default
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ProviderConfigError(f"{label} must be an integer") from None
    if n <= 0:
        raise ProviderConfigError(f"{label} must be > 0")
    return n


def _path(v: Any, default: str | None, label: str) -> str | None:
    if v is None or v == "":
        return default
    if not isinstance(v, str):
        raise ProviderConfigError(f"{label} must be a string")
    return v if v.startswith("/") else f"/{v}"


@dataclass(frozen=True)
class CustomMLSProviderConfig:
    name: str
    endpoint: str
    authentication: AuthConfig
    mapping: FieldMapping
    rate_limit_rpm: int = 60
    timeout_ms: int = 30000

    search_path: str = "/search"
    listing_path: str = "/listings/{id}"
    health_path: str | None = None
    default_province: str | None = None

    @classmethod
    def from_dict(
        cls,
        raw: dict[str, Any],
        *,
        default_rpm: int = 60,
        default_timeout_ms: int = 30000,
    ) -> "CustomMLSProviderConfig":
        if not isinstance(raw, dict):
            raise ProviderConfigError("provider config must be an object")

        name = str(raw.get("name") or "").strip()
        if not name:
            raise ProviderConfigError("name is required")

        endpoint = str(raw.get("endpoint") or "").strip().rstrip("/")
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ProviderConfigError(f"endpoint must be an http(s) URL, got {endpoint!r}")

        listing_path = _path(get_first(raw, "listingPath", "listing_path"), "/listings/{id}", "listingPath")
        if "{id}" not in listing_path:
            raise ProviderConfigError("listingPath must contain '{id}'")

        return cls(
            name=name,
            endpoint=endpoint,
            authentication=parse_auth(raw.get("authentication")),
            mapping=FieldMapping.compile(raw.get("mapping")),
            rate_limit_rpm=_positive_int(get_first(raw, "rateLimitRPM", "rate_limit_rpm"), default_rpm, "rateLimitRPM"),
            timeout_ms=_positive_int(raw.get("timeout"), default_timeout_ms, "timeout"),
            search_path=_path(get_first(raw, "searchPath", "search_path"), "/search", "searchPath"),
            listing_path=listing_path,
            health_path=_path(get_first(raw, "healthPath", "health_path"), None, "healthPath"),
            default_province=get_first(raw, "defaultProvince", "default_province"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire form, accepted back by from_dict (used for persistence)."""
        return {
            "name": self.name,
            "endpoint": self.endpoint,
            "authentication": auth_to_dict(self.authentication),
            "mapping": self.mapping.to_dict(),
            "rateLimitRPM": self.rate_limit_rpm,
            "timeout": self.timeout_ms,
            "searchPath": self.search_path,
            "listingPath": self.listing_path,
            "healthPath": self.health_path,
            "defaultProvince": self.default_province,
        }

    def redacted_dict(self) -> dict[str, Any]:
        out = self.to_dict()
        auth = out["authentication"]
        for key in SECRET_AUTH_KEYS:
            if key in auth:
                auth[key] = redact(auth[key])
        return out
