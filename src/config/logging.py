"""Logging configuration for processes embedding the interpreter and confirm step."""

from __future__ import annotations

import logging
import os

# Third-party loggers that are chatty at INFO/DEBUG.
QUIET_LOGGERS = ("psycopg.pool", "dateparser", "tzlocal")


def configure_logging(level: str | None = None) -> None:
    """Configure Python logging for the process.

    Parse results are logged at DEBUG and confirm outcomes at INFO. Operator text is never
    logged.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
