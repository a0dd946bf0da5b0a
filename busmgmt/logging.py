import logging
import os
from contextvars import ContextVar
from typing import Optional

import colorlog

log = logging.getLogger("busmgmt")

# Fixture identity of the test currently driving traffic, if any.
current_test_id: ContextVar[Optional[str]] = ContextVar(
    "busmgmt_current_test_id", default=None
)


class FixtureIdFilter(logging.Filter):
    """Tags records with the fixture identity of the active test."""

    def filter(self, record: logging.LogRecord) -> bool:
        test_id = current_test_id.get()
        record.test_id = f" <{test_id}>" if test_id else ""
        return True


def setup_logging(level=logging.INFO):
    if log.hasHandlers():
        return  # pragma: no cover

    handler = colorlog.StreamHandler()
    handler.addFilter(FixtureIdFilter())
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s%(test_id)s: %(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
    )
    log.setLevel(level)
    log.addHandler(handler)
    log.propagate = False

    log.debug("busmgmt logger is configured.")


if os.getenv("BUSMGMT_DEBUG"):
    setup_logging(level=logging.DEBUG)  # pragma: no cover
else:
    setup_logging(level=logging.INFO)
