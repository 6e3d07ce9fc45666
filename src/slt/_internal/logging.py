"""Structured logging setup for slt."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

_TEXT_FORMAT = "%(asctime)s %(levelname)-5s %(message)s"
_DEBUG_TEXT_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Emits one-line JSON objects with keys: timestamp, level, logger, message.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def _build_formatter(level: int, json_format: bool) -> logging.Formatter:
    if json_format:
        return _JsonFormatter()
    fmt = _DEBUG_TEXT_FORMAT if level <= logging.DEBUG else _TEXT_FORMAT
    return logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Point the ``slt`` logger at one stream handler and return it.

    Every call reconfigures the same handler: level, format and target
    stream all follow the latest arguments, and no second handler is
    ever attached.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per record instead of text.
            Text records only carry the logger name at DEBUG.
        stream: Output stream. Defaults to stderr.

    Returns:
        The ``slt`` logger.
    """
    logger = logging.getLogger("slt")
    logger.setLevel(level)
    logger.propagate = False

    handler = next(
        (h for h in logger.handlers if isinstance(h, logging.StreamHandler)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        logger.addHandler(handler)
    # Assigned directly: setStream would flush a stream that may be closed
    handler.stream = stream or sys.stderr
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(level, json_format))
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``slt`` namespace.

    Args:
        name: Logger name, appended to ``slt.`` prefix.
            Example: ``get_logger("engine.dispatch")`` returns
            ``logging.getLogger("slt.engine.dispatch")``.

    Returns:
        A child logger.
    """
    return logging.getLogger(f"slt.{name}")
