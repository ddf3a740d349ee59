"""
Tests for the universe engine.

What we test
------------
1. Benchmark handling — fetched once, never scored, missing benchmark
   disables regime-gated strategies.
2. Ranking — score descending, ties broken by symbol then algorithm,
   truncated to ``top_n``.
3. Runner-ups — best relaxed evaluation per algorithm, strictly greater
   score replaces.
4. ``EmptyUniverseError`` when the provider returns nothing.
5. ``to_ledger_entries`` — millisecond ``picked_at``, slippage-adjusted
   entry, ``pick_hash`` audit signature.
6. ``resolve_universe`` — de-duplication, benchmark exclusion, override.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

import pytest

from stock_picks.config import UniverseConfig
from stock_picks.errors import EmptyUniverseError
from stock_picks.models.pick import Pick
from stock_picks.picks.engine import generate_picks, pick_hash, rank_picks, to_ledger_entries
from stock_picks.picks.universe import DEFAULT_UNIVERSE, resolve_universe
from stock_picks.strategies.scorers import LiquidityShieldedPenny, RegimeAwareReversion

_NOW = datetime(2025, 6, 2, 14, 30, 0, 123456, tzinfo=timezone.utc)
_LSP = "Liquidity-Shielded Penny"


def _make_pick(
    symbol: str,
    score: float,
    algorithm: str = _LSP,
    price: float | None = 2.0,
) -> Pick:
    return Pick(
        symbol=symbol, score=score, rating="BUY",
        algorithm=algorithm, timeframe="24h", price=price,
    )


def _penny(make_snapshot, symbol: str, change: float):
    return make_snapshot(symbol, price=2.0, change_percent=change)


# ── Benchmark / regime ────────────────────────────────────────────────────────

class TestBenchmark:
    def test_fetched_once_and_excluded(self, fake_provider, make_snapshot, rising_closes) -> None:
        fake_provider.snapshots = {
            "SPY": make_snapshot("SPY", closes=rising_closes),
            "PEN": _penny(make_snapshot, "PEN", 6.0),
        }
        result = generate_picks(fake_provider, universe=["SPY", "PEN"], now=_NOW)

        assert fake_provider.snapshot_calls == ["SPY"]
        assert fake_provider.batch_calls == [["PEN"]]
        assert result.universe_size == 1
        assert result.regime.label == "Bullish"
        assert all(p.symbol != "SPY" for p in result.picks)

    def test_missing_benchmark_blocks_gated_strategies(self, fake_provider, make_snapshot) -> None:
        dip = [100.0 + i * 0.5 for i in range(236)]
        for _ in range(13):
            dip.append(dip[-1] - 1.0)
        dip.append(dip[-1] + 7.0)
        fake_provider.snapshots = {"DIP": make_snapshot("DIP", closes=dip)}

        result = generate_picks(
            fake_provider, strategies=[RegimeAwareReversion()], universe=["DIP"], now=_NOW
        )
        assert result.regime.label == "Indeterminate"
        assert result.picks == []
        assert result.runner_ups == {}

    def test_empty_universe_raises(self, fake_provider) -> None:
        with pytest.raises(EmptyUniverseError):
            generate_picks(fake_provider, universe=["AAA", "BBB"], now=_NOW)


# ── Ranking / runner-ups ──────────────────────────────────────────────────────

class TestRanking:
    def test_rank_ties_by_symbol_then_algorithm(self) -> None:
        picks = [
            _make_pick("BBB", 80.0),
            _make_pick("AAA", 80.0, algorithm="Zeta"),
            _make_pick("AAA", 80.0, algorithm="Alpha"),
            _make_pick("CCC", 95.0),
        ]
        ranked = rank_picks(picks, top_n=3)
        assert [(p.symbol, p.algorithm) for p in ranked] == [
            ("CCC", _LSP), ("AAA", "Alpha"), ("AAA", "Zeta"),
        ]

    def test_generate_orders_and_truncates(self, fake_provider, make_snapshot, rising_closes) -> None:
        fake_provider.snapshots = {
            "SPY": make_snapshot("SPY", closes=rising_closes),
            "PEN": _penny(make_snapshot, "PEN", 6.0),      # 80
            "HOT": _penny(make_snapshot, "HOT", 8.0),      # 100
            "AAA": _penny(make_snapshot, "AAA", 6.0),      # 80
        }
        result = generate_picks(
            fake_provider, strategies=[LiquidityShieldedPenny()],
            universe=["PEN", "HOT", "AAA"], top_n=2, now=_NOW,
        )
        assert [p.symbol for p in result.picks] == ["HOT", "AAA"]
        assert result.candidates == 3
        assert result.snapshots_fetched == 3
        summary = result.summary()
        assert summary["selected"] == 2
        assert summary["strongBuy"] == 1
        assert summary["byAlgorithm"] == {_LSP: 2}

    def test_runner_up_keeps_best_relaxed(self, fake_provider, make_snapshot) -> None:
        fake_provider.snapshots = {
            "PEN": _penny(make_snapshot, "PEN", 6.0),      # strict pick
            "WEAK": _penny(make_snapshot, "WEAK", 3.5),    # relaxed 55
            "NEAR": _penny(make_snapshot, "NEAR", 3.8),    # relaxed 58
            "TIE": _penny(make_snapshot, "TIE", 3.8),      # relaxed 58, seen later
        }
        result = generate_picks(
            fake_provider, strategies=[LiquidityShieldedPenny()],
            universe=["PEN", "WEAK", "NEAR", "TIE"], now=_NOW,
        )
        assert [p.symbol for p in result.picks] == ["PEN"]
        runner_up = result.runner_ups[_LSP]
        assert runner_up.symbol == "NEAR"
        assert runner_up.rating == "HOLD"
        assert runner_up.score == 58.0


# ── Ledger entries ────────────────────────────────────────────────────────────

class TestToLedgerEntries:
    def test_stamps_entries(self) -> None:
        pick = _make_pick("PEN", 80.0, price=2.0)
        [entry] = to_ledger_entries([pick], _NOW, slippage_pct=0.5)

        assert entry.picked_at.microsecond == 123000
        assert entry.entry_price == 2.0
        assert entry.simulated_entry_price == pytest.approx(2.01)
        assert entry.slippage_simulated is True
        assert entry.effective_entry_price == pytest.approx(2.01)
        assert entry.score == pick.score
        assert entry.algorithm == pick.algorithm

    def test_pick_hash_binds_timestamp(self) -> None:
        pick = _make_pick("PEN", 80.0)
        [entry] = to_ledger_entries([pick], _NOW)
        expected = hashlib.sha256(
            f"PEN-80-{_LSP}-BUY-2025-06-02T14:30:00.123Z".encode("utf-8")
        ).hexdigest()
        assert entry.pick_hash == expected
        assert pick_hash(pick, entry.picked_at) == expected
        assert pick_hash(pick, _NOW.replace(second=1)) != expected

    def test_unpriced_pick_not_simulated(self) -> None:
        [entry] = to_ledger_entries([_make_pick("PEN", 80.0, price=None)], _NOW)
        assert entry.simulated_entry_price is None
        assert entry.slippage_simulated is False


# ── Universe ──────────────────────────────────────────────────────────────────

class TestResolveUniverse:
    def test_default_excludes_benchmark(self) -> None:
        symbols = resolve_universe()
        assert "SPY" not in symbols
        assert len(symbols) == len(set(DEFAULT_UNIVERSE))

    def test_override_dedupes_and_uppercases(self) -> None:
        cfg = UniverseConfig(benchmark="QQQ", symbols=["aapl", " AAPL", "qqq", "msft", ""])
        assert resolve_universe(cfg) == ["AAPL", "MSFT"]
