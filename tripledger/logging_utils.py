"""Mini README: Application-wide logging helpers for the trip ledger.

Structure:
    * configure_root_logger - attach a single stream handler to the root logger.
    * get_logger - module logger factory that guarantees the handler exists.

Usage:
    Server and client modules alike call ``get_logger(__name__)`` at import
    time. Configuration happens once per process, so reloading modules under
    uvicorn's auto-reload or pytest collection never stacks duplicate
    handlers.
"""

from __future__ import annotations

import logging
from typing import Optional

_LOGGER_INITIALISED = False
_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"


def configure_root_logger(level: int = logging.INFO) -> None:
    """Configure the root logger once; later calls only adjust the level."""

    global _LOGGER_INITIALISED
    root_logger = logging.getLogger()
    if _LOGGER_INITIALISED:
        root_logger.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    _LOGGER_INITIALISED = True


def level_for_environment(environment: str) -> int:
    """Map an environment label onto a sensible default log level."""

    return logging.INFO if environment.strip().lower() == "production" else logging.DEBUG


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger ensuring baseline configuration."""

    if not _LOGGER_INITIALISED:
        configure_root_logger()
    return logging.getLogger(name)
