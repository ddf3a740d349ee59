"""
Pick verification: classify archived picks as WIN, LOSS or PENDING.

A pick is checked only once its horizon has elapsed::

    days_held = (now - picked_at) in fractional days
    days_held <  timeframe_days(timeframe)  ->  PENDING (no price fetch)
    price unavailable                       ->  PENDING
    otherwise:
        entry   = simulated_entry_price or entry_price or price
        return% = (exit - entry) / entry * 100
        WIN if return% > 0 else LOSS
        LOSS regardless of return when stop_loss is set and exit <= stop_loss

``build_performance_report()`` aggregates the classified picks into the
``pick-performance.json`` artifact.  Rates use half-up rounding: win rates
to one decimal, average returns to two.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from stock_picks.models.market import StockSnapshot
from stock_picks.models.pick import LedgerEntry, VerifiedPick
from stock_picks.utils.rounding import round_half_up
from stock_picks.utils.time_utils import fractional_days, timeframe_days, to_iso, utcnow

logger = logging.getLogger(__name__)

PriceLookup = Callable[[str], Optional[float]]

DEFAULT_TOP_HITS = 10


class CachedPriceLookup:
    """Current-price lookup that fetches each symbol at most once per run.

    Args:
        fetch: Callable returning a snapshot (normally
               ``provider.fetch_stock_data``).
    """

    def __init__(self, fetch: Callable[[str], Optional[StockSnapshot]]) -> None:
        self._fetch = fetch
        self._cache: dict[str, Optional[float]] = {}

    def __call__(self, symbol: str) -> Optional[float]:
        key = symbol.strip().upper()
        if key not in self._cache:
            snap = self._fetch(key)
            self._cache[key] = snap.price if snap is not None and snap.price > 0 else None
        return self._cache[key]

    @property
    def fetched(self) -> int:
        return len(self._cache)


def verify_entry(
    entry: LedgerEntry,
    price_lookup: PriceLookup,
    now: Optional[datetime] = None,
) -> VerifiedPick:
    """Classify one ledger entry against the current price.

    Args:
        entry:        Archived pick.
        price_lookup: ``symbol -> current price or None``.  Only called when
                      the pick has matured.
        now:          Reference time.

    Returns:
        A ``VerifiedPick``; ``exit_price`` is ``None`` while PENDING.
    """
    now = now or utcnow()
    days_held = fractional_days(entry.picked_at, now)
    base = entry.model_dump()

    def _pending() -> VerifiedPick:
        return VerifiedPick(
            **base,
            verified_at=now,
            exit_price=None,
            return_percent=0.0,
            days_held=round_half_up(days_held, 1),
            status="PENDING",
        )

    if days_held < timeframe_days(entry.timeframe):
        return _pending()

    entry_price = entry.effective_entry_price
    if not entry_price:
        logger.warning("No entry price for %s (%s); left pending.", entry.symbol, entry.algorithm)
        return _pending()

    try:
        exit_price = price_lookup(entry.symbol)
    except Exception as exc:
        logger.warning("Price lookup failed for %s: %s", entry.symbol, exc)
        return _pending()
    if not exit_price:
        logger.warning("Could not fetch price for %s; left pending.", entry.symbol)
        return _pending()

    return_pct = (exit_price - entry_price) / entry_price * 100.0
    status = "WIN" if return_pct > 0 else "LOSS"
    if entry.stop_loss and exit_price <= entry.stop_loss:
        status = "LOSS"

    return VerifiedPick(
        **base,
        verified_at=now,
        exit_price=exit_price,
        return_percent=round_half_up(return_pct, 2),
        days_held=round_half_up(days_held, 1),
        status=status,
    )


def verify_entries(
    entries: Sequence[LedgerEntry],
    price_lookup: PriceLookup,
    now: Optional[datetime] = None,
) -> list[VerifiedPick]:
    """Verify every entry with one shared reference time."""
    now = now or utcnow()
    return [verify_entry(e, price_lookup, now) for e in entries]


def _rate(wins: int, verified: int) -> float:
    return round_half_up(wins / verified * 100.0, 1) if verified else 0.0


def _mean(values: Sequence[float]) -> float:
    return round_half_up(sum(values) / len(values), 2) if values else 0.0


def build_performance_report(
    verified: Sequence[VerifiedPick],
    now: Optional[datetime] = None,
    top_hits: int = DEFAULT_TOP_HITS,
) -> dict[str, Any]:
    """Aggregate verified picks into the performance report dict.

    Args:
        verified: Output of ``verify_entries()``.
        now:      Timestamp recorded as ``lastVerified``.
        top_hits: Number of best wins listed in ``recentHits``.

    Returns:
        JSON-ready dict with camelCase keys.
    """
    now = now or utcnow()
    closed = [p for p in verified if p.status != "PENDING"]
    wins = [p for p in closed if p.status == "WIN"]
    losses = [p for p in closed if p.status == "LOSS"]

    by_algorithm: dict[str, dict[str, Any]] = {}
    returns_by_algorithm: dict[str, list[float]] = {}
    for pick in verified:
        stats = by_algorithm.setdefault(
            pick.algorithm,
            {"picks": 0, "verified": 0, "wins": 0, "losses": 0, "winRate": 0.0, "avgReturn": 0.0},
        )
        stats["picks"] += 1
        if pick.status == "PENDING":
            continue
        stats["verified"] += 1
        returns_by_algorithm.setdefault(pick.algorithm, []).append(pick.return_percent)
        if pick.status == "WIN":
            stats["wins"] += 1
        else:
            stats["losses"] += 1

    for algo, stats in by_algorithm.items():
        stats["winRate"] = _rate(stats["wins"], stats["verified"])
        stats["avgReturn"] = _mean(returns_by_algorithm.get(algo, []))

    recent_hits = sorted(wins, key=lambda p: (-p.return_percent, p.symbol))[:top_hits]

    return {
        "lastVerified": to_iso(now),
        "totalPicks": len(verified),
        "verified": len(closed),
        "pending": len(verified) - len(closed),
        "wins": len(wins),
        "losses": len(losses),
        "winRate": _rate(len(wins), len(closed)),
        "avgReturn": _mean([p.return_percent for p in closed]),
        "byAlgorithm": dict(sorted(by_algorithm.items())),
        "recentHits": [p.to_artifact() for p in recent_hits],
        "allPicks": [p.to_artifact() for p in verified],
    }
