"""
Market data models: daily bars, per-symbol snapshots and the regime signal.

``StockSnapshot`` is transient: it lives for one generation run and is never
persisted.  ``RegimeSignal`` is recomputed every run and only ever stored as
part of a ledger run file.
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Literal, Optional

from pydantic import field_validator

from stock_picks.models.base import ArtifactModel

RegimeStatus = Literal["Bullish", "Bearish"]


class PriceBar(ArtifactModel):
    """One daily OHLCV bar.

    Attributes:
        date:   Session date (exchange-local, as reported by the provider).
        open:   Opening price, when the provider supplies it.
        high:   Session high.  Falls back to ``close`` when unknown.
        low:    Session low.  Falls back to ``close`` when unknown.
        close:  Session close; must be positive for the bar to be usable.
        volume: Shares traded.
    """

    date: dt.date
    open: Optional[float] = None
    high: float
    low: float
    close: float
    volume: float = 0.0


def normalize_history(bars: Iterable[PriceBar]) -> list[PriceBar]:
    """Return bars sorted ascending by date, one per date, ``close > 0`` only.

    When a date appears more than once the last occurrence wins, matching the
    provider's habit of re-stating the in-progress session.
    """
    by_date: dict[dt.date, PriceBar] = {}
    for bar in bars:
        if bar.close is None or bar.close <= 0:
            continue
        by_date[bar.date] = bar
    return [by_date[d] for d in sorted(by_date)]


class StockSnapshot(ArtifactModel):
    """Current quote plus trailing daily history for one symbol."""

    symbol: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: float = 0.0
    avg_volume: float = 0.0
    market_cap: Optional[float] = None
    pe: Optional[float] = None
    history: list[PriceBar] = []

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def closes(self) -> list[float]:
        return [bar.close for bar in self.history]

    @property
    def volumes(self) -> list[float]:
        return [bar.volume for bar in self.history]


class RegimeSignal(ArtifactModel):
    """Market regime derived from a benchmark's price vs. its 200-bar SMA.

    Attributes:
        benchmark_symbol: Symbol used as the regime baseline (``"SPY"``).
        price:            Benchmark price at evaluation time.
        sma200:           200-bar simple moving average of benchmark closes.
        status:           ``"Bullish"`` iff ``price > sma200``.
        reason:           Human-readable explanation for the audit log.
    """

    benchmark_symbol: str
    price: float
    sma200: float
    status: RegimeStatus
    reason: str = ""

    @property
    def is_bullish(self) -> bool:
        return self.status == "Bullish"
