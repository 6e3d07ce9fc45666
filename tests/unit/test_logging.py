"""Tests for slt logging setup."""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING

import pytest

from slt._internal.logging import _JsonFormatter, get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def clean_slt_logger() -> Iterator[logging.Logger]:
    """Detach handlers from the ``slt`` logger and restore them afterwards."""
    logger = logging.getLogger("slt")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_get_logger_namespace() -> None:
    assert get_logger("engine.dispatch").name == "slt.engine.dispatch"


def test_setup_is_idempotent(clean_slt_logger: logging.Logger) -> None:
    setup_logging(logging.INFO)
    setup_logging(logging.DEBUG)

    assert len(clean_slt_logger.handlers) == 1
    assert clean_slt_logger.level == logging.DEBUG
    assert clean_slt_logger.handlers[0].level == logging.DEBUG
    assert clean_slt_logger.propagate is False


def test_json_format_selected(clean_slt_logger: logging.Logger) -> None:
    setup_logging(json_format=True)
    assert isinstance(clean_slt_logger.handlers[0].formatter, _JsonFormatter)


def test_json_formatter_output() -> None:
    record = logging.LogRecord(
        name="slt.engine.reporter",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Sent %d requests, %d ok, %d failures",
        args=(3, 2, 1),
        exc_info=None,
    )
    entry = json.loads(_JsonFormatter().format(record))

    assert entry["level"] == "INFO"
    assert entry["logger"] == "slt.engine.reporter"
    assert entry["message"] == "Sent 3 requests, 2 ok, 1 failures"
    assert "timestamp" in entry


def test_repeated_setup_follows_new_stream(clean_slt_logger: logging.Logger) -> None:
    first, second = io.StringIO(), io.StringIO()
    setup_logging(stream=first)
    setup_logging(stream=second)

    get_logger("engine.runner").info("Starting load test to %s", "http://localhost/")

    assert first.getvalue() == ""
    assert "INFO  Starting load test to http://localhost/" in second.getvalue()


def test_repeated_setup_switches_format(clean_slt_logger: logging.Logger) -> None:
    stream = io.StringIO()
    setup_logging(json_format=True, stream=stream)
    setup_logging(logging.DEBUG, stream=stream)

    get_logger("engine.dispatch").debug("Sending %d requests in worker", 4)

    assert not isinstance(clean_slt_logger.handlers[0].formatter, _JsonFormatter)
    assert "DEBUG slt.engine.dispatch: Sending 4 requests in worker" in stream.getvalue()
