"""Portfolio optimizer output models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from stock_picks.models.base import ArtifactModel


class PortfolioConstraints(ArtifactModel):
    max_positions: int
    max_weight_per_position: float


class PortfolioAllocation(ArtifactModel):
    """One position in the equal-weight portfolio.

    ``notional10k`` is the dollar amount allocated per $10,000 of capital.
    """

    symbol: str
    name: str
    weight: float
    notional10k: float
    entry_price: float
    score: float
    rating: str
    algorithm: Optional[str] = None


class PortfolioResult(ArtifactModel):
    generated_at: datetime
    strategy: Literal["equal_weight"] = "equal_weight"
    total_positions: int
    total_weight: float
    constraints: PortfolioConstraints
    allocations: list[PortfolioAllocation] = []
