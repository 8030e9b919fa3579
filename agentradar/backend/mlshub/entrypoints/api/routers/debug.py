# mlshub/entrypoints/api/routers/debug.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from ..deps import get_gateway, require_api_key
from ....config import settings
from ....domain.provider_config import redact
from ....service_layer.gateway import ListingGateway

router = APIRouter(prefix="/debug", tags=["debug"], dependencies=[Depends(require_api_key)])


@router.get("/config")
def debug_config() -> dict[str, Any]:
    """Settings as the running process sees them, secrets masked."""
    return {
        "ENV": settings.ENV,
        "MLSHUB_DB_URL": settings.MLSHUB_DB_URL,
        "REPLIERS_ENDPOINT": settings.REPLIERS_ENDPOINT,
        "REPLIERS_REGION": settings.REPLIERS_REGION,
        "REPLIERS_RATE_LIMIT": settings.REPLIERS_RATE_LIMIT,
        "REPLIERS_API_KEY": redact(settings.REPLIERS_API_KEY),
        "CACHE_BACKEND": settings.CACHE_BACKEND,
        "HEALTH_SCHEDULER_ENABLED": settings.HEALTH_SCHEDULER_ENABLED,
        "ADMIN_API_KEY_SET": bool(settings.ADMIN_API_KEY),
    }


@router.get("/providers")
def debug_providers(gateway: ListingGateway = Depends(get_gateway)) -> dict[str, Any]:
    return {
        provider_id: {"state": gateway.provider_state(provider_id).value, "config": cfg.redacted_dict()}
        for provider_id, cfg in gateway.provider_configs().items()
    }


@router.get("/cache/stats")
def debug_cache_stats(
    reset: bool = Query(default=False),
    gateway: ListingGateway = Depends(get_gateway),
) -> dict[str, Any]:
    stats = getattr(gateway.cache, "stats", None)
    if stats is None:
        return {"cache": None}
    snap = stats.snapshot()
    if reset:
        stats.reset()
    return {"backend": type(gateway.cache).__name__, "cache": snap}


@router.get("/routes")
def debug_routes(request: Request) -> dict[str, Any]:
    mounted: list[str] = []
    for route in request.app.routes:
        path = getattr(route, "path", None)
        if not path:
            continue
        methods = getattr(route, "methods", None)
        mounted.append(f"{','.join(sorted(methods))} {path}" if methods else path)
    mounted.sort()
    return {"count": len(mounted), "routes": mounted}
