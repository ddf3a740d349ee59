"""
Backtest driver: fetch history once per symbol and evaluate every pick.

History is requested from the earliest ``pickedAt`` among a symbol's picks,
so one fetch covers all of that symbol's windows.  When a ``HistoryStore``
is given, every fetched series is cached for later offline replays.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Optional, Protocol, Sequence

from stock_picks.backtest.windows import compute_row
from stock_picks.ingestion.history_store import HistoryStore
from stock_picks.models.market import PriceBar
from stock_picks.models.pick import BacktestRow, LedgerEntry

log = logging.getLogger(__name__)

PROGRESS_EVERY = 5


class HistorySource(Protocol):
    def fetch_history(self, symbol: str, from_date: date) -> Optional[list[PriceBar]]:
        ...


def run_backtest(
    entries: Sequence[LedgerEntry],
    source: HistorySource,
    store: Optional[HistoryStore] = None,
) -> list[BacktestRow]:
    """Compute one ``BacktestRow`` per ledger entry.

    Args:
        entries: De-duplicated ledger entries.
        source:  Anything with ``fetch_history(symbol, from_date)``.
        store:   Optional cache that receives every non-empty fetched series.

    Returns:
        Rows in input-group order; callers sort for output.
    """
    by_symbol: dict[str, list[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        by_symbol[entry.symbol].append(entry)

    rows: list[BacktestRow] = []
    symbols = sorted(by_symbol)
    for i, symbol in enumerate(symbols, start=1):
        picks = by_symbol[symbol]
        from_date = min(p.picked_at for p in picks).date()
        history = source.fetch_history(symbol, from_date)
        if history and store is not None:
            store.save(symbol, history)
        rows.extend(compute_row(p, history) for p in picks)
        if i % PROGRESS_EVERY == 0:
            log.info("Backtest: fetched %d/%d symbols", i, len(symbols))

    log.info("Backtest: %d rows over %d symbols", len(rows), len(symbols))
    return rows
