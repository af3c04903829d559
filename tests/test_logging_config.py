"""Tests for logging configuration."""

import json
import logging
import sys

import pytest

from restrec.logging_config import (
    LOG_LEVEL_ENV_VAR,
    JSONFormatter,
    default_log_level,
    setup_logging,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="restrec.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Recommendations generated for %s",
        args=("U1077",),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_message_and_extra_fields():
    payload = json.loads(JSONFormatter().format(_record(user_id="U1077", top_n=10)))

    assert payload["message"] == "Recommendations generated for U1077"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "restrec.test"
    assert payload["user_id"] == "U1077"
    assert payload["top_n"] == 10
    assert payload["timestamp"].endswith("Z")
    assert "args" not in payload


def test_json_formatter_serializes_unknown_types():
    payload = json.loads(JSONFormatter().format(_record(path=object())))

    assert isinstance(payload["path"], str)


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]


def test_setup_logging_json(restore_root_logger):
    setup_logging("debug", json_format=True)

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)


def test_setup_logging_text(restore_root_logger):
    setup_logging("WARNING")

    assert restore_root_logger.level == logging.WARNING
    assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)


def test_setup_logging_rejects_unknown_level(restore_root_logger):
    with pytest.raises(ValueError):
        setup_logging("LOUD")


def test_default_log_level_reads_environment(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "warning")
    assert default_log_level() == "WARNING"

    monkeypatch.delenv(LOG_LEVEL_ENV_VAR)
    assert default_log_level() == "INFO"
