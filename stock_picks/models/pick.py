"""
Pick lifecycle models.

  ``Pick``            emitted by a strategy scorer; immutable.
  ``LedgerEntry``     a ``Pick`` stamped with ``picked_at`` and entry prices
                      when it is appended to the ledger; never mutated.
  ``VerifiedPick``    a ``LedgerEntry`` classified WIN / LOSS / PENDING
                      against a current price; rebuilt on every verification
                      run.
  ``BacktestRow``     a ledger entry reconciled against its forward price
                      path; purely derived and regenerable.
  ``AlgorithmRanking`` per-algorithm hit-rate summary over backtest rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import field_validator

from stock_picks.models.base import ArtifactModel

Rating = Literal["STRONG BUY", "BUY", "HOLD", "SELL"]
Risk = Literal["Low", "Medium", "High", "Very High"]
VerificationStatus = Literal["WIN", "LOSS", "PENDING"]

BULLISH_RATINGS: frozenset[str] = frozenset({"STRONG BUY", "BUY"})


class Pick(ArtifactModel):
    """A single recommendation produced by one strategy.

    Attributes:
        symbol:         Ticker, upper-cased.
        name:           Display name from the provider.
        price:          Quote at scoring time.
        change:         Absolute change vs. previous close.
        change_percent: Percent change vs. previous close.
        score:          Strategy score in ``[0, 100]``.
        rating:         ``STRONG BUY`` / ``BUY`` (emitted) or ``HOLD``
                        (relaxed QA evaluations only).
        algorithm:      Strategy display name.
        timeframe:      Horizon label, e.g. ``"7d"``.
        risk:           Qualitative risk band.
        stop_loss:      Protective stop, when the strategy sets one.
        metrics:        Every intermediate statistic used in the decision.
        content_hash:   SHA-256 of the signal content.
    """

    symbol: str
    name: str = ""
    price: Optional[float] = None
    change: float = 0.0
    change_percent: float = 0.0
    score: float
    rating: Rating
    algorithm: str
    timeframe: str
    risk: Optional[Risk] = None
    stop_loss: Optional[float] = None
    metrics: dict[str, Any] = {}
    content_hash: str = ""

    @field_validator("symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty.")
        return v

    @field_validator("score")
    @classmethod
    def validate_score(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"score must be in [0, 100], got {v}.")
        return v


class LedgerEntry(Pick):
    """A pick as archived in the ledger.

    Attributes:
        picked_at:             UTC generation timestamp of the run.
        entry_price:           Quote used as the nominal entry.
        simulated_entry_price: Entry after the slippage haircut, if simulated.
        slippage_simulated:    ``True`` when ``simulated_entry_price`` was set
                               by the engine.
        pick_hash:             SHA-256 audit signature binding the signal
                               content to ``picked_at``.
    """

    picked_at: datetime
    entry_price: Optional[float] = None
    simulated_entry_price: Optional[float] = None
    slippage_simulated: bool = False
    pick_hash: Optional[str] = None

    @property
    def effective_entry_price(self) -> Optional[float]:
        """Simulated entry if present, else entry price, else the raw quote."""
        for candidate in (self.simulated_entry_price, self.entry_price, self.price):
            if candidate:
                return candidate
        return None

    @property
    def dedupe_key(self) -> tuple[str, str, str, datetime]:
        return (self.symbol, self.algorithm, self.timeframe, self.picked_at)


class VerifiedPick(LedgerEntry):
    """A ledger entry checked against the current market price.

    ``exit_price`` is ``None`` while the pick is PENDING.
    """

    verified_at: datetime
    exit_price: Optional[float] = None
    return_percent: float = 0.0
    days_held: float
    status: VerificationStatus


class BacktestRow(ArtifactModel):
    """One ledger entry reconciled against its forward price path.

    All return fields are percentages.  ``None`` means "not computable"
    (no history, or no bars inside the window).
    """

    symbol: str
    name: str
    algorithm: str
    timeframe: str
    rating: str
    score: float
    picked_at: datetime
    price_at_pick: Optional[float] = None
    return_in_timeframe_pct: Optional[float] = None
    return_since_pick_pct: Optional[float] = None
    min_in_window: Optional[float] = None
    max_in_window: Optional[float] = None
    hit: Optional[bool] = None
    latest_price: Optional[float] = None
    error: Optional[str] = None


class AlgorithmRanking(ArtifactModel):
    """Hit-rate summary for one algorithm across all backtest rows."""

    algorithm: str
    hit_rate_pct: float
    avg_return_pct: float
    count: int
    low_sample: bool
