# tests/helpers.py
from __future__ import annotations

import json
from typing import Any, Callable

import httpx


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Records sleeps and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


class Recorder:
    """httpx.MockTransport handler wrapper that keeps every request it saw."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content.decode() or "null")


# Raw custom-provider config in the shape admins POST.
CUSTOM_CONFIG: dict[str, Any] = {
    "name": "Acme MLS",
    "endpoint": "https://acme.example.com/api",
    "authentication": {"type": "bearer", "token": "acme-token"},
    "mapping": {
        "listingId": "id",
        "price": "list_price.amount",
        "city": "location.city",
        "bedrooms": "beds",
        "listingDate": "listed_at",
        "photos": "media",
        "coordinates": {"lat": "geo.lat", "lng": "geo.lng"},
    },
    "rateLimitRPM": 30,
}


def custom_config_copy() -> dict[str, Any]:
    return json.loads(json.dumps(CUSTOM_CONFIG))
