"""Logging configuration for mindmapx."""

import sys

from loguru import logger


def configure_logging(*, verbose: bool = False, level: str | None = None) -> None:
    """Configure loguru with appropriate level."""
    logger.remove()
    if level is None or verbose:
        level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level.upper(), format="{level.icon} {message}")
