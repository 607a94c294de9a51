"""Tests for Loguru sink setup."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from src.utils.config import LoggingConfig
from src.utils.logging_config import setup_logging


def test_file_sink_receives_structured_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "network.log"
    setup_logging(LoggingConfig(level="DEBUG", format="json", file=str(log_file)), console=False)

    try:
        logger.info("Built network", edges=3)
        logger.complete()
    finally:
        logger.remove()

    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])["record"]
    assert record["message"] == "Built network"
    assert record["extra"] == {"edges": 3}


def test_level_filters_file_sink(tmp_path: Path) -> None:
    log_file = tmp_path / "network.log"
    setup_logging(LoggingConfig(level="WARNING", file=str(log_file)), console=False)

    try:
        logger.info("hidden")
        logger.warning("shown")
    finally:
        logger.remove()

    contents = log_file.read_text(encoding="utf-8")
    assert "shown" in contents
    assert "hidden" not in contents
