"""Loguru sink configuration shared by scripts and examples."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from src.utils.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
)


def setup_logging(config: LoggingConfig | None = None, *, console: bool = True) -> None:
    """Replace the default Loguru handler with the configured sinks.

    Args:
        config: Logging section of the application config (defaults if omitted)
        console: Whether to keep a stderr sink
    """
    config = config or LoggingConfig()
    level = config.level.upper()
    serialize = config.format == "json"

    logger.remove()

    if console:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            serialize=serialize,
        )

    if config.file:
        target = Path(config.file)
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(target),
            level=level,
            rotation=config.rotation,
            retention=config.retention,
            compression="zip",
            serialize=serialize,
        )
