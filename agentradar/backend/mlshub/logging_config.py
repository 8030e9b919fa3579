# mlshub/logging_config.py
from __future__ import annotations

import logging

from .config import settings

NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "uvicorn", "uvicorn.error", "uvicorn.access")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
    )

    # Quiet the usual offenders
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
