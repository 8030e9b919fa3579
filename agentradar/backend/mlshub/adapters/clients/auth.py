# mlshub/adapters/clients/auth.py
from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from ...domain.errors import ProviderConfigError, ProviderError
from ...domain.provider_config import (
    ApiKeyAuth,
    AuthConfig,
    BasicAuth,
    BearerAuth,
    OAuthClientCredentials,
)
from .provider_http import json_body, provider_request
from .rate_limit import FixedWindowRateLimiter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Token:
    access_token: str
    expires_at: datetime


class AuthHeaders:
    """
    Builds the auth headers for exactly one authentication variant.

    Bearer / API key / Basic are static and baked into the client at
    construction. OAuth client-credentials exchanges a token on first use and
    refreshes it 30s before expiry.
    """

    def __init__(self, auth: AuthConfig, *, provider_id: str, endpoint: str) -> None:
        self.auth = auth
        self.provider_id = provider_id
        self._static = self._build_static(auth)
        self._token: _Token | None = None

        if isinstance(auth, OAuthClientCredentials):
            self.token_url = auth.token_url or f"{endpoint.rstrip('/')}/oauth/token"
        else:
            self.token_url = None

    @staticmethod
    def _build_static(auth: AuthConfig) -> dict[str, str]:
        if isinstance(auth, BearerAuth):
            return {"Authorization": f"Bearer {auth.token}"}
        if isinstance(auth, ApiKeyAuth):
            return {auth.header_name: auth.api_key}
        if isinstance(auth, BasicAuth):
            encoded = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
            return {"Authorization": f"Basic {encoded}"}
        if isinstance(auth, OAuthClientCredentials):
            return {}
        raise ProviderConfigError(f"Unsupported authentication variant: {type(auth).__name__}")

    @property
    def static_headers(self) -> dict[str, str]:
        return dict(self._static)

    @property
    def needs_token(self) -> bool:
        return isinstance(self.auth, OAuthClientCredentials)

    async def request_headers(
        self,
        client: httpx.AsyncClient,
        limiter: FixedWindowRateLimiter,
    ) -> dict[str, str]:
        """Per-request headers on top of the client's static ones."""
        if not self.needs_token:
            return {}
        token = await self._get_token(client, limiter)
        return {"Authorization": f"Bearer {token}"}

    async def _get_token(self, client: httpx.AsyncClient, limiter: FixedWindowRateLimiter) -> str:
        if self._token and self._token.expires_at > _utcnow() + timedelta(seconds=30):
            return self._token.access_token

        auth = self.auth
        assert isinstance(auth, OAuthClientCredentials)
        assert self.token_url is not None

        data = {
            "grant_type": "client_credentials",
            "client_id": auth.client_id,
            "client_secret": auth.client_secret,
        }
        if auth.scope:
            data["scope"] = auth.scope

        resp = await provider_request(
            client,
            limiter,
            "POST",
            self.token_url,
            provider_id=self.provider_id,
            operation="oauth token",
            headers={"accept": "application/json", "content-type": "application/x-www-form-urlencoded"},
            data=data,
        )
        payload = json_body(resp, provider_id=self.provider_id, operation="oauth token")
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise ProviderError(self.provider_id, "oauth token", "token response has no access_token")

        expires_in = payload.get("expires_in", 3600)
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError):
            expires_in = 3600

        self._token = _Token(access_token=str(token), expires_at=_utcnow() + timedelta(seconds=expires_in))
        return self._token.access_token
