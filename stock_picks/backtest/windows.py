"""
Forward-window evaluation of a single archived pick.

Window
------
A pick made on calendar date ``D`` with timeframe ``tf`` is judged over the
bars whose calendar-day offset from ``D`` lies in ``[0, timeframe_days(tf)]``.
The first bar in that window is the reference price; the pick's own quoted
price is kept only for display as ``priceAtPick``.

Hit rule (asymmetric)
---------------------
  STRONG BUY / BUY   hit iff the in-window return is strictly positive.
  anything else      hit iff the in-window return is >= -5%.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from stock_picks.models.market import PriceBar
from stock_picks.models.pick import BULLISH_RATINGS, BacktestRow, LedgerEntry
from stock_picks.utils.time_utils import days_between, timeframe_days

NON_BULLISH_TOLERANCE_PCT = -5.0
NO_HISTORY_ERROR = "No history"


def bars_in_window(
    history: Sequence[PriceBar],
    picked_date: date,
    tf_days: int,
) -> list[PriceBar]:
    """Bars whose calendar-day offset from ``picked_date`` is in ``[0, tf_days]``."""
    return [
        bar for bar in history
        if 0 <= days_between(picked_date, bar.date) <= tf_days
    ]


def is_hit(rating: str, return_pct: Optional[float]) -> Optional[bool]:
    """Apply the asymmetric hit rule; ``None`` when there is no return."""
    if return_pct is None:
        return None
    if rating in BULLISH_RATINGS:
        return return_pct > 0
    return return_pct >= NON_BULLISH_TOLERANCE_PCT


def _pct(start: float, end: float) -> Optional[float]:
    return (end - start) / start * 100.0 if start else None


def compute_row(entry: LedgerEntry, history: Optional[Sequence[PriceBar]]) -> BacktestRow:
    """Reconcile one ledger entry against its forward price path.

    Args:
        entry:   Archived pick.
        history: Ascending daily bars starting on or before the pick date,
                 or ``None`` / empty when the fetch failed.

    Returns:
        A ``BacktestRow``.  With no history at all, ``error`` is
        ``"No history"``; with history but no bar in the window, every
        computed field is ``None``.
    """
    row = {
        "symbol": entry.symbol,
        "name": entry.name or entry.symbol,
        "algorithm": entry.algorithm,
        "timeframe": entry.timeframe,
        "rating": entry.rating,
        "score": entry.score,
        "picked_at": entry.picked_at,
        "price_at_pick": entry.price,
    }
    if not history:
        return BacktestRow(**row, error=NO_HISTORY_ERROR)

    window = bars_in_window(history, entry.picked_at.date(), timeframe_days(entry.timeframe))
    if not window:
        return BacktestRow(**row)

    start = window[0].close
    in_window_return = _pct(start, window[-1].close)
    closes = [bar.close for bar in window]
    latest = history[-1].close

    return BacktestRow(
        **row,
        return_in_timeframe_pct=in_window_return,
        return_since_pick_pct=_pct(start, latest),
        min_in_window=min(closes),
        max_in_window=max(closes),
        hit=is_hit(entry.rating, in_window_return),
        latest_price=latest,
    )
