"""Mini README: Logging setup shared by the tracker, its store client and the web app.

Structure:
    * configure_root_logger - attach one stream handler to the root logger.
    * get_logger - module logger used for loads, saves, rollovers and requests.

Usage:
    The launcher calls ``configure_root_logger`` before uvicorn starts, and
    every module calls ``get_logger(__name__)`` at import time. With
    ``--reload`` uvicorn serves from a fresh worker process that only reaches
    the setup through ``get_logger``. The module-level flag keeps each process
    at a single handler, so save and rollover messages are never printed twice.
"""

from __future__ import annotations

import logging
from typing import Optional

_LOGGER_INITIALISED = False


def configure_root_logger(level: int = logging.INFO) -> None:
    """Attach the timestamped handler once; later calls in the same process are no-ops."""

    global _LOGGER_INITIALISED
    if _LOGGER_INITIALISED:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    _LOGGER_INITIALISED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the named logger, so test and library imports also get the handler."""

    configure_root_logger()
    return logging.getLogger(name)
