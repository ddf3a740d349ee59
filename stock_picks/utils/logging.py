"""
Logging setup for the stock-pick CLI.

``configure_logging(config.logging)`` runs once per CLI command; modules
below ``stock_picks`` only call ``logging.getLogger(__name__)``.

Plain lines look like::

    2025-06-02T21:00:00.123Z [WARNING] stock_picks.ingestion.yahoo_client: Failed to fetch XYZ: HTTP 404

With ``json_format = true`` under ``[logging]`` each record is one JSON
object.  Keys passed through ``extra=`` (``symbol``, ``run_slug``, ...) are
lifted to the top level::

    {"ts": "2025-06-02T21:00:00.123Z", "level": "INFO", "logger": "...", "msg": "...", "symbol": "AAPL"}

Timestamps use the same millisecond UTC format as the JSON artifacts, so a
log line can be matched to the ``pickedAt`` / ``lastUpdated`` it produced.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from stock_picks.utils.time_utils import to_iso

if TYPE_CHECKING:
    from stock_picks.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# httpx logs every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "pyarrow")

_RESERVED_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def _record_time(record: logging.LogRecord) -> str:
    return to_iso(datetime.fromtimestamp(record.created, tz=timezone.utc))


class _UtcFormatter(logging.Formatter):
    """Plain-text formatter stamping records in artifact time format."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _record_time(record)


class _JsonFormatter(logging.Formatter):
    """One JSON object per record, ``extra=`` keys included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _record_time(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            (key, val)
            for key, val in record.__dict__.items()
            if key not in _RESERVED_KEYS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout and (optionally) file handlers on the root logger.

    Args:
        config: ``[logging]`` section.  ``log_file`` parents are created;
                an empty ``log_file`` logs to stdout only.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter: logging.Formatter = (
        _JsonFormatter() if config.json_format else _UtcFormatter(LOG_FORMAT)
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
