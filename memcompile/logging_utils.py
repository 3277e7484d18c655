"""Logger names and setup shared across memcompile."""
from __future__ import annotations

import logging
from typing import Union

COMPILER_LOGGER_NAME = "memcompile.compiler"
DIAGNOSTICS_LOGGER_NAME = "memcompile.diagnostics"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Install the default console handler for scripts and CLIs."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)


__all__ = ["COMPILER_LOGGER_NAME", "DIAGNOSTICS_LOGGER_NAME", "LOG_FORMAT", "configure_logging"]
