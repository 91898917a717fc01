"""Tests for the global logging setup."""

import json
import logging

import pytest
import structlog

from ip_scanner.config import LoggingConfig
from ip_scanner.utils.logging import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_logging_to_file(tmp_path, restore_logging):
    log_file = tmp_path / "scan.log"
    configure_logging(LoggingConfig(level="DEBUG", format="json", file=log_file))

    structlog.get_logger("ip_scanner.test").info("Probe finished", address="10.0.0.1", port=80)
    for handler in logging.getLogger().handlers:
        handler.flush()

    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    probe = next(record for record in records if record["event"] == "Probe finished")
    assert probe["address"] == "10.0.0.1"
    assert probe["level"] == "info"
    assert probe["logger"] == "ip_scanner.test"
    assert "timestamp" in probe


def test_level_filters_records(tmp_path, restore_logging):
    log_file = tmp_path / "scan.log"
    configure_logging(LoggingConfig(level="WARNING", format="console", file=log_file))

    structlog.get_logger("ip_scanner.test").info("hidden")
    structlog.get_logger("ip_scanner.test").warning("shown")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = log_file.read_text()
    assert "shown" in text
    assert "hidden" not in text
