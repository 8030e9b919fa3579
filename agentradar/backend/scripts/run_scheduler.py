from __future__ import annotations

import asyncio
import logging

from mlshub.bootstrap import build_gateway
from mlshub.jobs.scheduler import build_scheduler
from mlshub.logging_config import configure_logging


async def main() -> None:
    configure_logging()

    gateway = await build_gateway()
    scheduler = build_scheduler(gateway)
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started")

    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, asyncio.CancelledError):
        scheduler.shutdown()
        logging.getLogger(__name__).info("Scheduler stopped")
    finally:
        await gateway.aclose()


if __name__ == "__main__":
    asyncio.run(main())
