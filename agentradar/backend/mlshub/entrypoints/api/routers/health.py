# mlshub/entrypoints/api/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def liveness(request: Request) -> dict[str, str]:
    # Process liveness only; provider reachability lives on /mls/health.
    gateway = getattr(request.app.state, "gateway", None)
    return {"status": "ok", "gateway": "ready" if gateway is not None else "starting"}
