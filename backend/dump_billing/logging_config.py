"""Logging setup for the Dump billing service."""
import logging
import sys
from typing import Optional

from dump_billing.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers held at WARNING whatever the app level is.
# The Stripe SDK logs full request bodies at INFO.
QUIET_LOGGERS = ("sqlalchemy", "stripe", "apscheduler.executors", "httpx")


def setup_logging(level: Optional[str] = None) -> None:
    """Send every record to stdout at ``level`` (default ``settings.LOG_LEVEL``)."""
    log_level = (level or settings.LOG_LEVEL).upper()

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
