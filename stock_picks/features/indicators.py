"""
Technical indicators over daily close series.

Every function here is pure: no I/O, no clock, no shared state.  Short input
never raises.  Each function documents the neutral value it returns when
there is not enough data, and callers decide what that means.

Indicator notes
---------------
SMA
  Arithmetic mean of the last ``n`` values.  Returns ``None`` with fewer
  than ``n`` points, so a missing average can never be mistaken for a price.

RSI
  Simple-average variant over the most recent ``period`` deltas (no Wilder
  smoothing carried across the whole series).  A zero delta counts as a
  gain of zero.  No losses → 100; no gains → 0.  Fewer than
  ``period + 1`` points → 50, the documented "no signal" value.

Ulcer Index
  sqrt(mean(drawdown²)), drawdown measured in percent from a running peak
  that only advances on new highs.  Captures both depth and duration of
  declines: a strictly rising series scores exactly 0.

Martin-like ratio
  return / (ulcer + 1).  Finite for a zero-drawdown series.

ATR
  Mean true range over the last ``period`` bars, using each bar's high/low
  and the previous close.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from stock_picks.models.market import PriceBar

RSI_NEUTRAL = 50.0


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp ``value`` to ``[lo, hi]``."""
    return max(lo, min(hi, value))


# ── Moving averages / oscillators ─────────────────────────────────────────────

def sma(prices: Sequence[float], n: int) -> Optional[float]:
    """Simple moving average of the last ``n`` values, or ``None`` if ``len < n``."""
    if n <= 0 or len(prices) < n:
        return None
    window = prices[-n:]
    return sum(window) / n


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index over the most recent ``period`` deltas.

    Returns:
        Value in ``[0, 100]``; ``50.0`` when ``len(prices) < period + 1``.
    """
    if len(prices) < period + 1:
        return RSI_NEUTRAL

    gains = 0.0
    losses = 0.0
    for i in range(len(prices) - period, len(prices)):
        diff = prices[i] - prices[i - 1]
        if diff >= 0:
            gains += diff
        else:
            losses -= diff

    if losses == 0:
        return 100.0
    rs = gains / losses
    return 100.0 - 100.0 / (1.0 + rs)


# ── Drawdown / return ratios ──────────────────────────────────────────────────

def ulcer_index(prices: Sequence[float]) -> float:
    """Ulcer Index of ``prices`` (percent units).  ``0.0`` for empty input."""
    if not prices:
        return 0.0

    peak = 0.0
    sum_sq = 0.0
    for price in prices:
        if price > peak:
            peak = price
        elif peak > 0:
            drawdown = (price - peak) / peak * 100.0
            sum_sq += drawdown * drawdown

    return math.sqrt(sum_sq / len(prices))


def total_return_pct(start: float, end: float) -> Optional[float]:
    """Percent return from ``start`` to ``end``; ``None`` when ``start <= 0``."""
    if start <= 0:
        return None
    return (end - start) / start * 100.0


def martin_ratio(total_return: float, ulcer: float) -> float:
    """Return per unit of drawdown pain: ``total_return / (ulcer + 1)``."""
    return total_return / (ulcer + 1.0)


# ── Volatility ────────────────────────────────────────────────────────────────

def atr(bars: Sequence[PriceBar], period: int = 14) -> float:
    """Average True Range over the last ``period`` bars; ``0.0`` if too short."""
    if len(bars) <= period:
        return 0.0

    total = 0.0
    for i in range(len(bars) - period, len(bars)):
        high = bars[i].high or bars[i].close
        low = bars[i].low or bars[i].close
        prev_close = bars[i - 1].close
        total += max(high - low, abs(high - prev_close), abs(low - prev_close))
    return total / period


def bollinger_width(prices: Sequence[float], period: int = 20) -> Optional[float]:
    """Bollinger band width ``4σ / SMA`` over the last ``period`` closes."""
    mean = sma(prices, period)
    if mean is None or mean == 0:
        return None
    window = prices[-period:]
    variance = sum((p - mean) ** 2 for p in window) / period
    return 4.0 * math.sqrt(variance) / mean


def zscore(value: float, history: Sequence[float]) -> float:
    """Population z-score of ``value`` against ``history``.

    Returns ``0.0`` with fewer than five observations or zero dispersion.
    """
    n = len(history)
    if n < 5:
        return 0.0
    mean = sum(history) / n
    variance = sum((x - mean) ** 2 for x in history) / n
    std = math.sqrt(variance)
    if std == 0:
        return 0.0
    return (value - mean) / std


# ── Trend structure ───────────────────────────────────────────────────────────

def relative_strength(prices: Sequence[float]) -> int:
    """IBD-style relative strength rating in ``[0, 99]``.

    Weighted price ratio vs. one quarter (63 bars, 40%), half year
    (126 bars, 30%) and one year (252 bars, 30%) ago, scaled so that a flat
    year rates 50.  Lookbacks longer than the series fall back to the first
    close.  Fewer than 100 closes → 50.
    """
    if len(prices) < 100:
        return 50

    current = prices[-1]

    def _back(n: int) -> float:
        ref = prices[-n] if len(prices) >= n else prices[0]
        return ref if ref > 0 else prices[0]

    score = (
        current / _back(63) * 0.4
        + current / _back(126) * 0.3
        + current / _back(252) * 0.3
    )
    return min(99, max(0, round(score * 50)))


def is_stage2_uptrend(prices: Sequence[float]) -> bool:
    """Weinstein stage-2 check: price above a rising 150/200 stack and the 50."""
    if len(prices) < 200:
        return False
    current = prices[-1]
    sma50 = sma(prices, 50)
    sma150 = sma(prices, 150)
    sma200 = sma(prices, 200)
    assert sma50 is not None and sma150 is not None and sma200 is not None
    return (
        current > sma150
        and current > sma200
        and sma150 > sma200
        and current > sma50
    )
