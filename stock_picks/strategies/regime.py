"""
Market regime detection.

Bullish iff the benchmark's current price is above the 200-bar SMA of its
closes.  With fewer than 200 bars the regime is indeterminate and
``detect_regime`` returns ``None``.

Callers distinguish two "no signal" cases:

  - no benchmark supplied at all: strategies may assume a permissive
    bullish regime;
  - benchmark supplied but indeterminate: regime-gated strategies must
    not emit.

``RegimeContext`` carries both facts into the scorers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from stock_picks.features.indicators import sma
from stock_picks.models.market import RegimeSignal, StockSnapshot

logger = logging.getLogger(__name__)

REGIME_LOOKBACK = 200


def detect_regime(benchmark: Optional[StockSnapshot]) -> Optional[RegimeSignal]:
    """Classify the market regime from a benchmark snapshot.

    Returns:
        A ``RegimeSignal``, or ``None`` when no benchmark is given or it has
        fewer than 200 bars.
    """
    if benchmark is None:
        return None

    sma200 = sma(benchmark.closes, REGIME_LOOKBACK)
    if sma200 is None:
        logger.warning(
            "Regime indeterminate: %s has %d bars (need %d).",
            benchmark.symbol, len(benchmark.history), REGIME_LOOKBACK,
        )
        return None

    bullish = benchmark.price > sma200
    signal = RegimeSignal(
        benchmark_symbol=benchmark.symbol,
        price=benchmark.price,
        sma200=sma200,
        status="Bullish" if bullish else "Bearish",
        reason=(
            "Price is above long-term 200-day average"
            if bullish
            else "Price is below long-term 200-day average"
        ),
    )
    logger.info(
        "Market regime: %s (%s %.2f vs SMA200 %.2f)",
        signal.status, signal.benchmark_symbol, signal.price, signal.sma200,
    )
    return signal


@dataclass(frozen=True)
class RegimeContext:
    """What the scorers know about the market regime for one run.

    Attributes:
        signal:             The computed signal, or ``None`` if unavailable.
        benchmark_supplied: ``True`` when a benchmark snapshot was provided,
                            even if it was too short to classify.
    """

    signal: Optional[RegimeSignal] = None
    benchmark_supplied: bool = False

    @classmethod
    def from_benchmark(cls, benchmark: Optional[StockSnapshot]) -> "RegimeContext":
        return cls(signal=detect_regime(benchmark), benchmark_supplied=benchmark is not None)

    @property
    def allows_long_entries(self) -> bool:
        """``True`` if regime-gated strategies may emit.

        Bullish signal → yes.  Bearish → no.  No benchmark at all → yes
        (permissive default).  Benchmark supplied but indeterminate → no.
        """
        if self.signal is not None:
            return self.signal.is_bullish
        return not self.benchmark_supplied

    @property
    def label(self) -> str:
        if self.signal is not None:
            return self.signal.status
        return "Assumed Bullish" if not self.benchmark_supplied else "Indeterminate"
