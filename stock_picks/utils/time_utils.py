"""
Time and date utilities.

Key concepts:
  - Timeframes: every pick carries a horizon label (``"24h"``, ``"7d"``,
    ``"1m"`` ...).  ``TIMEFRAME_TRADING_DAYS`` maps each label to an
    approximate trading-day count; that single table drives window matching
    in the backtest and maturity checks in verification.
  - Timestamps: ledger files carry ISO-8601 strings, sometimes with a ``Z``
    suffix and sometimes date-only.  ``parse_timestamp`` accepts all of them
    and always returns an aware UTC datetime.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

# ── Timeframe lookup ──────────────────────────────────────────────────────────

TIMEFRAME_TRADING_DAYS: dict[str, int] = {
    "24h": 1,
    "3d":  3,
    "7d":  5,
    "2w":  10,
    "1m":  21,
    "3m":  63,
    "6m":  126,
    "1y":  252,
}

DEFAULT_TIMEFRAME_DAYS = 21


def timeframe_days(timeframe: str | None) -> int:
    """Return the trading-day count for a timeframe label.

    Unknown or missing labels fall back to ``DEFAULT_TIMEFRAME_DAYS`` (one
    trading month).
    """
    if not timeframe:
        return DEFAULT_TIMEFRAME_DAYS
    return TIMEFRAME_TRADING_DAYS.get(timeframe.strip().lower(), DEFAULT_TIMEFRAME_DAYS)


# ── Timestamps ────────────────────────────────────────────────────────────────

def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def parse_timestamp(value: str | None) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Accepts ``"2026-01-28T21:00:00.000Z"``, ``"2026-01-28T21:00:00+00:00"``,
    naive datetimes (assumed UTC) and date-only strings (midnight UTC).

    Returns:
        The parsed datetime, or ``None`` when ``value`` is empty or malformed.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        if "T" in text or " " in text:
            dt = datetime.fromisoformat(text)
        else:
            dt = datetime.fromisoformat(text + "T00:00:00")
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (UTC)."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def days_between(start: date, end: date) -> int:
    """Signed calendar-day offset from ``start`` to ``end``."""
    return (end - start).days


def fractional_days(start: datetime, end: datetime) -> float:
    """Elapsed time between two aware datetimes, in fractional days."""
    return (end - start).total_seconds() / 86_400.0
