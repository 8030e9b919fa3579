# mlshub/entrypoints/fastapi_app.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ..bootstrap import build_gateway
from ..config import settings
from ..jobs.scheduler import build_scheduler
from ..service_layer.gateway import ListingGateway
from .api.routers import debug, health, mls

log = logging.getLogger(__name__)


def create_app(gateway: ListingGateway | None = None) -> FastAPI:
    """
    `gateway` is injectable for tests; otherwise it is built from settings on
    startup (tables created, persisted custom providers restored).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = gateway is None
        gw = gateway if gateway is not None else await build_gateway()
        app.state.gateway = gw

        scheduler = None
        if settings.HEALTH_SCHEDULER_ENABLED:
            scheduler = build_scheduler(gw)
            scheduler.start()
            log.info("MLS health scheduler started")

        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            if owned:
                await gw.aclose()

    app = FastAPI(title="AgentRadar - MLS Hub", lifespan=lifespan)

    # Routers
    app.include_router(health.router)
    app.include_router(mls.router)
    app.include_router(debug.router)

    return app
