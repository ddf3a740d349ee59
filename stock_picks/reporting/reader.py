"""
Report reader: loads persisted artifacts and checks their age.

Loaders return ``None`` rather than raising when a file is missing or
unreadable, so CLI commands can print a friendly "no data yet" message.

``check_freshness()`` compares a report's timestamp (``generatedAt``,
``lastVerified`` or ``lastUpdated``) against a reference time.  Date-only
strings are treated as midnight UTC.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from stock_picks.utils.time_utils import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

TIMESTAMP_KEYS = ("generatedAt", "lastVerified", "lastUpdated")


def load_json_report(path: Path) -> Optional[Any]:
    """Parse the JSON file at ``path``; ``None`` if missing or malformed."""
    if not path.exists():
        logger.debug("No report at %s", path)
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to load report %s: %s", path, exc)
        return None


def report_timestamp(report: Optional[dict]) -> Optional[str]:
    """Return the first timestamp-like field present in ``report``."""
    if not isinstance(report, dict):
        return None
    for key in TIMESTAMP_KEYS:
        if report.get(key):
            return str(report[key])
    return None


def check_freshness(
    generated_at: str | None,
    max_hours: float = 26.0,
    now: Optional[datetime] = None,
) -> tuple[bool, float | None]:
    """Check whether a report timestamp is within the freshness window.

    Args:
        generated_at: ISO-8601 string from the report.
        max_hours:    Age beyond which the report is stale.  The default
                      covers one daily run plus slack.
        now:          Reference time; defaults to the current UTC time.

    Returns:
        ``(is_fresh, age_hours)``; ``age_hours`` is None when the string
        cannot be parsed.
    """
    ts = parse_timestamp(generated_at)
    if ts is None:
        return False, None
    age_hours = ((now or utcnow()) - ts).total_seconds() / 3600.0
    return age_hours <= max_hours, age_hours
