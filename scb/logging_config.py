"""
Logging configuration for SCB components.

Every entry point (CLI, API, supervisor) calls setup_logging once; modules only
ever do logging.getLogger(__name__).
"""
from __future__ import annotations

import logging
import sys

from .settings import settings


def setup_logging(component_name: str, level: str | int | None = None, format_string: str | None = None) -> logging.Logger:
    """Configure root logging to stdout for one component.

    Args:
        component_name: Component identifier (e.g. 'supervisor', 'cli')
        level: Logging level name or number (defaults to SCB_LOG_LEVEL)
        format_string: Custom format string (default provided)
    """
    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if format_string is None:
        format_string = f"[%(asctime)s] [{component_name.upper()}] %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    return logging.getLogger(component_name)
