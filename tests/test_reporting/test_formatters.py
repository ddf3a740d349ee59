"""Tests for the CLI text formatters."""

from __future__ import annotations

from datetime import datetime, timezone

from stock_picks.models.meta import RunMetadata
from stock_picks.models.pick import Pick
from stock_picks.portfolio.optimizer import equal_weight_portfolio
from stock_picks.reporting.formatters import (
    format_freshness_banner,
    format_performance_summary,
    format_picks_table,
    format_portfolio_table,
    format_runs_table,
)

_NOW = datetime(2025, 6, 2, 21, 0, tzinfo=timezone.utc)


def _make_pick(symbol: str, score: float, price: float | None = 12.5) -> Pick:
    return Pick(
        symbol=symbol, score=score, rating="BUY", price=price,
        algorithm="Volatility-Adjusted Momentum", timeframe="1m",
    )


def test_freshness_banner() -> None:
    assert "[FRESH]" in format_freshness_banner(True, 2.0)
    assert "[STALE]" in format_freshness_banner(False, 30.0)
    assert "[AGE UNKNOWN]" in format_freshness_banner(False, None)


def test_picks_table() -> None:
    text = format_picks_table([_make_pick("AAPL", 91.0), _make_pick("PEN", 80.0, price=None)])
    lines = text.splitlines()
    assert len(lines) == 4
    assert "AAPL" in lines[2] and "91" in lines[2] and "12.50" in lines[2]
    assert lines[3].split()[5] == "-"
    assert format_picks_table([]) == "  (no picks)"


def test_portfolio_table() -> None:
    text = format_portfolio_table(equal_weight_portfolio([_make_pick("AAPL", 91.0)], now=_NOW))
    assert "Positions: 1" in text
    assert "20.00%" in text
    assert "2,000.00" in text
    assert "(empty portfolio)" in format_portfolio_table(equal_weight_portfolio([], now=_NOW))


def test_performance_summary() -> None:
    report = {
        "totalPicks": 3, "verified": 2, "pending": 1, "wins": 1, "losses": 1,
        "winRate": 50.0, "avgReturn": 1.25,
        "byAlgorithm": {"": {"wins": 1, "verified": 2, "winRate": 50.0, "avgReturn": 1.25}},
    }
    text = format_performance_summary(report)
    assert "Win rate: 50.0%" in text
    assert "+1.25%" in text
    assert "(unknown): 1/2" in text


def test_runs_table() -> None:
    run = RunMetadata(
        run_slug="abc", pipeline_stage="verify", status="failed",
        config_snapshot={}, started_at=_NOW, error_message="boom",
    )
    text = format_runs_table([run])
    assert "2025-06-02 21:00:00" in text
    assert "error: boom" in text
    assert format_runs_table([]) == "  (no runs recorded)"
