"""
Tests for market regime detection.

What we test
------------
1. ``detect_regime`` — Bullish above the 200-bar SMA, Bearish at or below,
   ``None`` without a benchmark or with fewer than 200 bars.
2. ``RegimeContext`` — which combinations allow regime-gated entries and
   the label recorded in the ledger.
"""

from __future__ import annotations

import pytest

from stock_picks.models.market import RegimeSignal
from stock_picks.strategies.regime import RegimeContext, detect_regime


def _signal(status: str = "Bullish") -> RegimeSignal:
    return RegimeSignal(benchmark_symbol="SPY", price=110.0, sma200=100.0, status=status)


# ── detect_regime ─────────────────────────────────────────────────────────────

class TestDetectRegime:
    def test_no_benchmark(self) -> None:
        assert detect_regime(None) is None

    def test_too_short_is_indeterminate(self, make_snapshot) -> None:
        snap = make_snapshot("SPY", closes=[100.0] * 199)
        assert detect_regime(snap) is None

    def test_bullish_above_sma(self, make_snapshot, rising_closes) -> None:
        snap = make_snapshot("SPY", closes=rising_closes)
        signal = detect_regime(snap)
        assert signal is not None
        assert signal.status == "Bullish"
        assert signal.is_bullish
        assert signal.benchmark_symbol == "SPY"
        # mean of 150..349
        assert signal.sma200 == pytest.approx(249.5)

    def test_bearish_below_sma(self, make_snapshot, rising_closes) -> None:
        snap = make_snapshot("SPY", closes=rising_closes, price=200.0)
        signal = detect_regime(snap)
        assert signal is not None
        assert signal.status == "Bearish"
        assert not signal.is_bullish

    def test_price_equal_to_sma_is_bearish(self, make_snapshot) -> None:
        snap = make_snapshot("SPY", closes=[100.0] * 200)
        signal = detect_regime(snap)
        assert signal is not None
        assert signal.status == "Bearish"


# ── RegimeContext ─────────────────────────────────────────────────────────────

class TestRegimeContext:
    def test_no_benchmark_is_permissive(self) -> None:
        ctx = RegimeContext()
        assert ctx.allows_long_entries
        assert ctx.label == "Assumed Bullish"

    def test_supplied_but_indeterminate_blocks(self) -> None:
        ctx = RegimeContext(signal=None, benchmark_supplied=True)
        assert not ctx.allows_long_entries
        assert ctx.label == "Indeterminate"

    def test_bullish_allows(self) -> None:
        ctx = RegimeContext(signal=_signal("Bullish"), benchmark_supplied=True)
        assert ctx.allows_long_entries
        assert ctx.label == "Bullish"

    def test_bearish_blocks(self) -> None:
        ctx = RegimeContext(signal=_signal("Bearish"), benchmark_supplied=True)
        assert not ctx.allows_long_entries
        assert ctx.label == "Bearish"

    def test_from_benchmark_short_history(self, make_snapshot) -> None:
        ctx = RegimeContext.from_benchmark(make_snapshot("SPY", closes=[100.0] * 50))
        assert ctx.benchmark_supplied
        assert ctx.signal is None
        assert not ctx.allows_long_entries
