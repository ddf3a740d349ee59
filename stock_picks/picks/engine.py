"""
Universe engine: fetch once, score everything, keep the best.

Flow for one generation run::

    benchmark snapshot ──► RegimeContext (computed once)
    universe snapshots ──► every strategy ──► picks (strict)
                                         └──► runner-ups (relaxed, per algorithm)
    picks ──► sort by score desc, symbol, algorithm ──► top N

Scores are compared on their raw 0-100 scale across algorithms; there is
no cross-algorithm normalisation.

``to_ledger_entries()`` turns the selected picks into archive records:
stamped with the run's ``picked_at``, a slippage-adjusted entry price and
the ``pick_hash`` audit signature.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from stock_picks.errors import EmptyUniverseError
from stock_picks.ingestion.provider import MarketDataProvider
from stock_picks.models.pick import LedgerEntry, Pick
from stock_picks.picks.universe import BENCHMARK_SYMBOL, DEFAULT_UNIVERSE
from stock_picks.strategies.regime import RegimeContext, detect_regime
from stock_picks.strategies.scorers import Strategy, all_strategies, format_score
from stock_picks.utils.time_utils import to_iso, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 20
DEFAULT_SLIPPAGE_PCT = 0.5


@dataclass
class GenerationResult:
    """Outcome of one ``generate_picks()`` call.

    Attributes:
        generated_at:      Reference time of the run.
        picks:             Top-N strict picks, best first.
        runner_ups:        Best relaxed evaluation per algorithm that emitted
                           nothing for a symbol, keyed by algorithm name.
        regime:            Regime context used for every scorer.
        universe_size:     Symbols requested (benchmark excluded).
        snapshots_fetched: Snapshots the provider returned for the pool.
        candidates:        Strict picks found before truncation.
    """

    generated_at: datetime
    picks: list[Pick]
    runner_ups: dict[str, Pick] = field(default_factory=dict)
    regime: RegimeContext = field(default_factory=RegimeContext)
    universe_size: int = 0
    snapshots_fetched: int = 0
    candidates: int = 0

    def summary(self) -> dict:
        by_algorithm: dict[str, int] = {}
        for pick in self.picks:
            by_algorithm[pick.algorithm] = by_algorithm.get(pick.algorithm, 0) + 1
        return {
            "generatedAt": to_iso(self.generated_at),
            "regime": self.regime.label,
            "universeSize": self.universe_size,
            "snapshotsFetched": self.snapshots_fetched,
            "candidates": self.candidates,
            "selected": len(self.picks),
            "strongBuy": sum(1 for p in self.picks if p.rating == "STRONG BUY"),
            "buy": sum(1 for p in self.picks if p.rating == "BUY"),
            "byAlgorithm": by_algorithm,
            "runnerUps": {
                algo: {"symbol": p.symbol, "score": p.score}
                for algo, p in sorted(self.runner_ups.items())
            },
        }


def rank_picks(picks: Sequence[Pick], top_n: int = DEFAULT_TOP_N) -> list[Pick]:
    """Sort by score descending (ties: symbol, algorithm) and keep ``top_n``."""
    ordered = sorted(picks, key=lambda p: (-p.score, p.symbol, p.algorithm))
    return ordered[:top_n]


def generate_picks(
    provider: MarketDataProvider,
    strategies: Optional[Sequence[Strategy]] = None,
    universe: Optional[Sequence[str]] = None,
    benchmark: str = BENCHMARK_SYMBOL,
    top_n: int = DEFAULT_TOP_N,
    now: Optional[datetime] = None,
) -> GenerationResult:
    """Run every strategy over the universe and return the top picks.

    Args:
        provider:   Market data source.
        strategies: Scorers to run; defaults to ``all_strategies()``.
        universe:   Symbols to score; defaults to the built-in universe.
        benchmark:  Regime baseline symbol; fetched once, never scored.
        top_n:      Maximum picks returned.
        now:        Reference time of the run.

    Returns:
        A ``GenerationResult``.

    Raises:
        EmptyUniverseError: The provider returned no snapshots at all.
    """
    now = now or utcnow()
    strategies = list(strategies) if strategies is not None else all_strategies()
    benchmark = benchmark.strip().upper()
    symbols = list(universe) if universe is not None else list(DEFAULT_UNIVERSE)

    logger.info("Fetching regime baseline %s", benchmark)
    benchmark_snapshot = provider.fetch_stock_data(benchmark)
    # A requested benchmark that cannot be fetched is indeterminate, not permissive.
    regime = RegimeContext(signal=detect_regime(benchmark_snapshot), benchmark_supplied=True)
    if benchmark_snapshot is None:
        logger.warning("Benchmark %s unavailable; regime-gated strategies disabled.", benchmark)

    pool_symbols = [s for s in symbols if s.strip().upper() != benchmark]
    logger.info("Fetching universe: %d symbols", len(pool_symbols))
    snapshots = [
        snap for snap in provider.fetch_multiple_stocks(pool_symbols)
        if snap.symbol != benchmark
    ]
    if not snapshots:
        raise EmptyUniverseError(
            f"Provider returned no snapshots for {len(pool_symbols)} symbols."
        )

    candidates: list[Pick] = []
    runner_ups: dict[str, Pick] = {}
    for snap in snapshots:
        for strategy in strategies:
            pick = strategy.score(snap, regime, strict=True)
            if pick is not None:
                candidates.append(pick)
                continue
            relaxed = strategy.score(snap, regime, strict=False)
            if relaxed is None:
                continue
            best = runner_ups.get(relaxed.algorithm)
            if best is None or relaxed.score > best.score:
                runner_ups[relaxed.algorithm] = relaxed

    picks = rank_picks(candidates, top_n)
    logger.info(
        "Generated %d candidate picks from %d snapshots; kept top %d (regime=%s)",
        len(candidates), len(snapshots), len(picks), regime.label,
    )
    return GenerationResult(
        generated_at=now,
        picks=picks,
        runner_ups=runner_ups,
        regime=regime,
        universe_size=len(pool_symbols),
        snapshots_fetched=len(snapshots),
        candidates=len(candidates),
    )


def pick_hash(pick: Pick, picked_at: datetime) -> str:
    """SHA-256 binding a pick's content to its generation timestamp."""
    payload = (
        f"{pick.symbol}-{format_score(pick.score)}-{pick.algorithm}-"
        f"{pick.rating}-{to_iso(picked_at)}"
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def to_ledger_entries(
    picks: Sequence[Pick],
    picked_at: datetime,
    slippage_pct: float = DEFAULT_SLIPPAGE_PCT,
) -> list[LedgerEntry]:
    """Stamp picks for the ledger with ``picked_at``, entry prices and hash.

    ``picked_at`` is truncated to milliseconds, the precision of the ledger
    timestamp format.
    """
    picked_at = picked_at.replace(microsecond=picked_at.microsecond // 1000 * 1000)
    entries: list[LedgerEntry] = []
    for pick in picks:
        simulated = (
            round(pick.price * (1 + slippage_pct / 100.0), 4) if pick.price else None
        )
        entries.append(
            LedgerEntry(
                **pick.model_dump(),
                picked_at=picked_at,
                entry_price=pick.price,
                simulated_entry_price=simulated,
                slippage_simulated=simulated is not None,
                pick_hash=pick_hash(pick, picked_at),
            )
        )
    return entries
