"""
Equal-weight portfolio construction.

  1. Drop picks with no price at all (simulated, entry or quote).
  2. Sort by score descending (stable) and keep ``max_positions``.
  3. Weight every position ``min(1/n, max_weight)``.

The clamped weights are NOT renormalised: with fewer than
``1 / max_weight`` positions the portfolio is deliberately under-invested
and ``totalWeight < 1``; the remainder is implicit cash.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from stock_picks.models.pick import Pick
from stock_picks.models.portfolio import (
    PortfolioAllocation,
    PortfolioConstraints,
    PortfolioResult,
)
from stock_picks.reporting.export import write_json_atomic
from stock_picks.utils.rounding import round_half_up
from stock_picks.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_POSITIONS = 10
DEFAULT_MAX_WEIGHT = 0.2
REFERENCE_NOTIONAL = 10_000.0
PORTFOLIO_FILENAME = "daily-portfolio.json"


def entry_price_for(pick: Pick) -> Optional[float]:
    """Simulated entry if present, else entry price, else the quoted price."""
    for attr in ("simulated_entry_price", "entry_price", "price"):
        value = getattr(pick, attr, None)
        if value is not None:
            return value
    return None


def equal_weight_portfolio(
    picks: Sequence[Pick],
    max_positions: int = DEFAULT_MAX_POSITIONS,
    max_weight: float = DEFAULT_MAX_WEIGHT,
    now: Optional[datetime] = None,
    reference_notional: float = REFERENCE_NOTIONAL,
) -> PortfolioResult:
    """Build an equal-weight portfolio from scored picks.

    Args:
        picks:              Picks or ledger entries of the latest run.
        max_positions:      Maximum number of holdings.
        max_weight:         Per-position weight cap.
        now:                Timestamp recorded as ``generatedAt``.
        reference_notional: Capital used for the ``notional10k`` column.

    Returns:
        A ``PortfolioResult``; empty input yields zero positions and
        ``totalWeight == 0``.
    """
    now = now or utcnow()
    constraints = PortfolioConstraints(
        max_positions=max_positions, max_weight_per_position=max_weight
    )

    priced = [p for p in picks if entry_price_for(p) is not None]
    selected = sorted(priced, key=lambda p: -p.score)[:max_positions]
    n = len(selected)
    if n == 0:
        logger.info("No priced picks; empty portfolio.")
        return PortfolioResult(
            generated_at=now,
            total_positions=0,
            total_weight=0.0,
            constraints=constraints,
            allocations=[],
        )

    weight = min(1.0 / n, max_weight)
    allocations = [
        PortfolioAllocation(
            symbol=p.symbol,
            name=p.name,
            weight=weight,
            notional10k=round_half_up(reference_notional * weight, 2),
            entry_price=entry_price_for(p),
            score=p.score,
            rating=p.rating,
            algorithm=p.algorithm or None,
        )
        for p in selected
    ]
    result = PortfolioResult(
        generated_at=now,
        total_positions=n,
        total_weight=round_half_up(weight * n, 4),
        constraints=constraints,
        allocations=allocations,
    )
    logger.info(
        "Portfolio: %d positions at %.4f each (total weight %.4f)",
        n, weight, result.total_weight,
    )
    return result


def write_portfolio(result: PortfolioResult, reports_dir: Path) -> Path:
    return write_json_atomic(result.to_artifact(), reports_dir / PORTFOLIO_FILENAME)
