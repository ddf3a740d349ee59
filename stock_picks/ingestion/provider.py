"""
Market data provider contract.

The engine, verifier and backtest depend on this protocol only, so tests can
substitute an in-memory provider and the Yahoo client stays swappable.

Contract: failures never raise.  A symbol that cannot be fetched yields
``None`` (or is omitted from a batch) and the failure is logged by the
implementation.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from stock_picks.models.market import PriceBar, StockSnapshot


class MarketDataProvider(Protocol):
    def fetch_stock_data(self, symbol: str) -> Optional[StockSnapshot]:
        """Current quote plus trailing daily history, or ``None``."""
        ...

    def fetch_multiple_stocks(self, symbols: Sequence[str]) -> list[StockSnapshot]:
        """Snapshots for every symbol that could be fetched, in request order."""
        ...

    def fetch_history(self, symbol: str, from_date: date) -> Optional[list[PriceBar]]:
        """Daily bars on or after ``from_date``, ascending, ``close > 0``."""
        ...
