"""
Parquet cache of daily price history.

Layout: ``<cache_dir>/<SYMBOL>.parquet``, one file per symbol, overwritten
on every online fetch.  The backtest writes what it fetched here so a later
``backtest --offline`` replays against exactly the same bars.

Schema (``_HISTORY_PA_SCHEMA``)::

    date    date32   not null
    open    float64  nullable
    high    float64  not null
    low     float64  not null
    close   float64  not null
    volume  float64  not null
"""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from stock_picks.models.market import PriceBar, normalize_history

log = logging.getLogger(__name__)

_HISTORY_PA_SCHEMA = pa.schema([
    pa.field("date",   pa.date32(),  nullable=False),
    pa.field("open",   pa.float64(), nullable=True),
    pa.field("high",   pa.float64(), nullable=False),
    pa.field("low",    pa.float64(), nullable=False),
    pa.field("close",  pa.float64(), nullable=False),
    pa.field("volume", pa.float64(), nullable=False),
])


class HistoryStore:
    """Read/write per-symbol bar history under ``cache_dir``."""

    def __init__(self, cache_dir: Path | str) -> None:
        self.cache_dir = Path(cache_dir)

    def path_for(self, symbol: str) -> Path:
        return self.cache_dir / f"{symbol.strip().upper()}.parquet"

    def save(self, symbol: str, bars: Sequence[PriceBar]) -> Path:
        """Write ``bars`` for ``symbol``, replacing any cached file atomically."""
        bars = normalize_history(bars)
        table = pa.table(
            {
                "date":   [b.date for b in bars],
                "open":   [b.open for b in bars],
                "high":   [b.high for b in bars],
                "low":    [b.low for b in bars],
                "close":  [b.close for b in bars],
                "volume": [float(b.volume) for b in bars],
            },
            schema=_HISTORY_PA_SCHEMA,
        )
        path = self.path_for(symbol)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            pq.write_table(table, str(tmp), compression="snappy")
            os.replace(tmp, path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        log.debug("Cached %d bars for %s -> %s", len(bars), symbol, path)
        return path

    def load(self, symbol: str, from_date: Optional[date] = None) -> Optional[list[PriceBar]]:
        """Read cached bars for ``symbol``; ``None`` if not cached or unreadable."""
        path = self.path_for(symbol)
        if not path.exists():
            return None
        try:
            rows = pq.read_table(str(path)).to_pylist()
        except (OSError, pa.ArrowInvalid) as exc:
            log.warning("Unreadable history cache %s: %s", path, exc)
            return None
        bars = normalize_history(PriceBar(**row) for row in rows)
        if from_date is not None:
            bars = [b for b in bars if b.date >= from_date]
        return bars

    def symbols(self) -> list[str]:
        if not self.cache_dir.exists():
            return []
        return sorted(p.stem for p in self.cache_dir.glob("*.parquet"))


class CachedHistoryProvider:
    """History source that reads only from a ``HistoryStore``.

    Used by ``backtest --offline``.  Symbols missing from the cache behave
    like provider failures and yield ``None``.
    """

    def __init__(self, store: HistoryStore) -> None:
        self.store = store

    def fetch_history(self, symbol: str, from_date: date) -> Optional[list[PriceBar]]:
        bars = self.store.load(symbol, from_date)
        if bars is None:
            log.warning("No cached history for %s in %s", symbol, self.store.cache_dir)
        return bars
