from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# -----------------------------
# Authentication (tagged by "type")
# -----------------------------
class BearerAuthIn(BaseModel):
    type: Literal["bearer"]
    token: str = Field(..., min_length=1)


class ApiKeyAuthIn(BaseModel):
    type: Literal["apikey"]
    apiKey: str = Field(..., min_length=1)
    headerName: str = "X-API-Key"


class BasicAuthIn(BaseModel):
    type: Literal["basic"]
    username: str = Field(..., min_length=1)
    password: str = ""


class OAuthAuthIn(BaseModel):
    type: Literal["oauth"]
    clientId: str = Field(..., min_length=1)
    clientSecret: str = Field(..., min_length=1)
    tokenUrl: str | None = None
    scope: str | None = None


AuthIn = Annotated[
    Union[BearerAuthIn, ApiKeyAuthIn, BasicAuthIn, OAuthAuthIn],
    Field(discriminator="type"),
]


# Used by /mls/providers/test when the caller sends no mapping.
DEFAULT_TEST_MAPPING: dict[str, Any] = {
    "listingId": "id",
    "address": "address",
    "city": "city",
    "price": "price",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "propertyType": "type",
    "listingDate": "listed_date",
    "status": "status",
}


class ProviderConfigIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    endpoint: str = Field(..., min_length=1)
    authentication: AuthIn
    mapping: dict[str, Any]

    rateLimitRPM: int | None = Field(default=None, gt=0)
    timeout: int | None = Field(default=None, gt=0)
    searchPath: str | None = None
    listingPath: str | None = None
    healthPath: str | None = None
    defaultProvince: str | None = None

    def to_config_dict(self) -> dict[str, Any]:
        """Wire dict accepted by CustomMLSProviderConfig.from_dict."""
        return self.model_dump(exclude={"providerId"}, exclude_none=True)


class ProviderCreate(ProviderConfigIn):
    providerId: str = Field(..., min_length=1, max_length=120)

    @field_validator("providerId", mode="before")
    @classmethod
    def _strip_provider_id(cls, v: object) -> object:
        """Stored under the same id the gateway registers."""
        if isinstance(v, str):
            return v.strip()
        return v


class ProviderTestIn(ProviderConfigIn):
    name: str = "test-provider"
    mapping: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_TEST_MAPPING))


# -----------------------------
# Responses
# -----------------------------
class ProviderAddedOut(BaseModel):
    success: bool = True
    message: str
    providerId: str


class ProviderRemovedOut(BaseModel):
    success: bool = True
    message: str
    removed: bool


class ProviderTestConfigOut(BaseModel):
    endpoint: str
    authType: str
    mappingFields: int


class ProviderTestOut(BaseModel):
    success: bool = True
    message: str
    config: ProviderTestConfigOut


PROVIDER_TEST_SUGGESTIONS = [
    "Verify the endpoint URL is correct and accessible",
    "Check authentication credentials are valid",
    "Ensure the API returns data in the expected format",
    "Verify rate limiting allows sufficient requests",
]
