# mlshub/jobs/scheduler.py
from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..adapters.cache import ListingCache
from ..config import settings
from ..service_layer.gateway import ListingGateway

log = logging.getLogger(__name__)


async def _run_health_recheck(gateway: ListingGateway) -> None:
    """
    Custom providers drop to unhealthy 5 minutes after their last good probe,
    so this has to run more often than that to keep live providers green.
    """
    try:
        report = await gateway.health_check()
    except Exception:
        log.exception("MLS health recheck crashed")
        return
    unhealthy = [pid for pid, ok in report.custom.items() if not ok]
    if unhealthy:
        log.warning("MLS health recheck: unhealthy custom providers: %s", ", ".join(unhealthy))


async def _run_cache_purge(cache: ListingCache) -> None:
    try:
        n = await cache.purge_expired()
    except Exception:
        log.exception("Cache purge crashed")
        return
    if n:
        log.info("Purged %d expired cache entries", n)


def build_scheduler(gateway: ListingGateway) -> AsyncIOScheduler:
    sched = AsyncIOScheduler()

    sched.add_job(
        lambda: asyncio.create_task(_run_health_recheck(gateway)),
        "interval",
        minutes=settings.HEALTH_RECHECK_INTERVAL_MINUTES,
        id="mls_health_recheck",
    )

    cache = gateway.cache
    sched.add_job(
        lambda: asyncio.create_task(_run_cache_purge(cache)),
        "interval",
        minutes=settings.CACHE_PURGE_INTERVAL_MINUTES,
        id="cache_purge",
    )

    return sched
