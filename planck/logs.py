"""Logging setup for processes that embed planck. Call once at the entry point."""
from __future__ import annotations

import logging
import sys
from typing import Optional

import structlog

from planck.config import settings

_PACKAGE = "planck"
_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure structlog and attach a stderr handler to the planck logger.

    *level* defaults to settings.LOG_LEVEL. Repeated calls only update the
    level; the handler is attached once.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level_name!r}")

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )

    pkg_logger = logging.getLogger(_PACKAGE)
    pkg_logger.setLevel(numeric)
    if not any(getattr(h, "_planck", False) for h in pkg_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        handler._planck = True  # type: ignore[attr-defined]
        pkg_logger.addHandler(handler)

    return pkg_logger
