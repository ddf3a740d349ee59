"""
Shared pytest fixtures for the stock-pick test suite.

Provides:
  - ``in_memory_db``: fresh in-memory SQLite connection with the schema applied.
  - ``make_bars`` / ``make_snapshot``: factories for synthetic price series.
  - ``FakeProvider`` / ``fake_provider``: in-memory ``MarketDataProvider``
    that records every call.
  - ``app_config``: ``AppConfig`` whose every path lives under ``tmp_path``.
"""

from __future__ import annotations

import sqlite3
from datetime import date, timedelta
from typing import Callable, Generator, Optional, Sequence

import pytest

from stock_picks.config import (
    AppConfig,
    DatabaseConfig,
    DataConfig,
    LoggingConfig,
    ProviderConfig,
)
from stock_picks.db.schema import apply_schema
from stock_picks.models.market import PriceBar, StockSnapshot


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Price series factories ────────────────────────────────────────────────────

def build_bars(
    closes: Sequence[float],
    start: date = date(2025, 1, 1),
    volumes: Optional[Sequence[float]] = None,
    spread_pct: float = 1.0,
) -> list[PriceBar]:
    """One bar per consecutive calendar day, high/low ``spread_pct`` around close."""
    bars = []
    for i, close in enumerate(closes):
        bars.append(
            PriceBar(
                date=start + timedelta(days=i),
                open=close,
                high=close * (1 + spread_pct / 100),
                low=close * (1 - spread_pct / 100),
                close=close,
                volume=volumes[i] if volumes is not None else 1_000_000.0,
            )
        )
    return bars


@pytest.fixture
def make_bars() -> Callable[..., list[PriceBar]]:
    return build_bars


def build_snapshot(
    symbol: str = "TEST",
    closes: Sequence[float] = (),
    price: Optional[float] = None,
    change_percent: float = 0.0,
    volume: Optional[float] = None,
    avg_volume: float = 1_000_000.0,
    name: Optional[str] = None,
) -> StockSnapshot:
    history = build_bars(closes) if closes else []
    if price is None:
        price = closes[-1] if closes else 10.0
    return StockSnapshot(
        symbol=symbol,
        name=name or f"{symbol} Inc.",
        price=price,
        change=price * change_percent / 100,
        change_percent=change_percent,
        volume=volume if volume is not None else (history[-1].volume if history else avg_volume),
        avg_volume=avg_volume,
        history=history,
    )


@pytest.fixture
def make_snapshot() -> Callable[..., StockSnapshot]:
    return build_snapshot


@pytest.fixture
def rising_closes() -> list[float]:
    """250 strictly increasing closes (bullish benchmark / stage-2 trend)."""
    return [100.0 + i for i in range(250)]


# ── Fake provider ─────────────────────────────────────────────────────────────

class FakeProvider:
    """In-memory provider.  Unknown symbols behave like fetch failures."""

    def __init__(
        self,
        snapshots: Optional[dict[str, StockSnapshot]] = None,
        histories: Optional[dict[str, list[PriceBar]]] = None,
    ) -> None:
        self.snapshots = dict(snapshots or {})
        self.histories = dict(histories or {})
        self.snapshot_calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.history_calls: list[tuple[str, date]] = []

    def fetch_stock_data(self, symbol: str) -> Optional[StockSnapshot]:
        self.snapshot_calls.append(symbol)
        return self.snapshots.get(symbol)

    def fetch_multiple_stocks(self, symbols: Sequence[str]) -> list[StockSnapshot]:
        self.batch_calls.append(list(symbols))
        return [self.snapshots[s] for s in symbols if s in self.snapshots]

    def fetch_history(self, symbol: str, from_date: date) -> Optional[list[PriceBar]]:
        self.history_calls.append((symbol, from_date))
        bars = self.histories.get(symbol)
        if bars is None:
            return None
        return [b for b in bars if b.date >= from_date]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ── Config ────────────────────────────────────────────────────────────────────

@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """AppConfig with the DB, ledger, reports, cache and logs under ``tmp_path``."""
    return AppConfig(
        database=DatabaseConfig(db_path=str(tmp_path / "db" / "runs.db")),
        data=DataConfig(
            ledger_dir=str(tmp_path / "ledger"),
            legacy_archive_dirs=[str(tmp_path / "picks-archive")],
            reports_dir=str(tmp_path / "reports"),
            history_cache_dir=str(tmp_path / "cache" / "history"),
        ),
        provider=ProviderConfig(request_delay_ms=0),
        logging=LoggingConfig(log_file=str(tmp_path / "logs" / "test.log")),
    )
