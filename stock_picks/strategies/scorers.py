"""
Strategy scorers.

A closed set of four strategies share one interface::

    strategy.score(snapshot, regime=None, strict=True) -> Pick | None

Each scorer is a total function: any unmet precondition (too little
history, price outside the band, regime veto, score below the emission
threshold) yields ``None``.  Nothing here raises for disqualification,
performs I/O or reads the clock.

  RegimeAwareReversion (RAR)
      Buy short-term dips in stocks already above their own 200-day SMA,
      only while the market regime permits long entries.
      RSI(14) < 40 qualifies; score = (40 − rsi) × 2 + 60.  7d, Medium risk.

  VolatilityAdjustedMomentum (VAM)
      60-bar return per unit of Ulcer Index.  Return must be ≥ 5%;
      score = return / (ulcer + 1) × 10 + 40, emitted above 60.  1m, Low risk.

  LiquidityShieldedPenny (LSP)
      Sub-$5 movers whose tradable depth (2% of average dollar volume) is at
      least $5,000 and whose day move survives a 3-point slippage haircut.
      score = (change% − 3) × 10 + 50.  24h, Very High risk.

  ScientificCanSlim (SCS)
      Classical CAN SLIM screen (relative strength, stage-2 trend, RSI band,
      volume surge, volatility contraction, institutional support) with an
      absolute regime veto.  Emitted at ≥ 60.  1y, Medium risk.

``strict=False`` keeps every data, price-band, liquidity and regime veto
but drops the emission threshold, returning a HOLD-rated evaluation.  The
engine uses it only to report per-algorithm runner-ups.

Every intermediate statistic used in a decision is exposed in
``Pick.metrics``.
"""

from __future__ import annotations

import hashlib
import math
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from stock_picks.features.indicators import (
    atr,
    bollinger_width,
    clamp,
    is_stage2_uptrend,
    martin_ratio,
    relative_strength,
    rsi,
    sma,
    total_return_pct,
    ulcer_index,
    zscore,
)
from stock_picks.models.market import RegimeSignal, StockSnapshot
from stock_picks.models.pick import Pick, Rating, Risk
from stock_picks.strategies.regime import RegimeContext

RegimeInput = Union[RegimeContext, RegimeSignal, None]


def content_hash(symbol: str, score: float, algorithm: str, rating: str) -> str:
    """SHA-256 hex digest identifying a signal's content."""
    payload = f"{symbol}-{format_score(score)}-{algorithm}-{rating}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def format_score(score: float) -> str:
    """Render a score the way it appears inside content hashes (``72``, ``72.5``)."""
    return str(int(score)) if float(score).is_integer() else repr(float(score))


def _round_score(raw: float) -> float:
    # Half-up rounding to a whole number.
    return float(math.floor(clamp(raw) + 0.5))


def _atr_stop(price: float, atr_value: float, multiple: float) -> Optional[float]:
    """Protective stop ``multiple`` ATRs below ``price``, rounded to cents."""
    if atr_value <= 0:
        return None
    stop = round(price - atr_value * multiple, 2)
    return stop if stop > 0 else None


def _as_context(regime: RegimeInput) -> RegimeContext:
    if isinstance(regime, RegimeContext):
        return regime
    if isinstance(regime, RegimeSignal):
        return RegimeContext(signal=regime, benchmark_supplied=True)
    return RegimeContext()


class Strategy(ABC):
    """Abstract scorer.  Subclasses implement ``score()``; ``_pick()`` builds the ``Pick``."""

    name: str
    code: str
    timeframe: str
    risk: Risk

    @abstractmethod
    def score(
        self,
        snapshot: StockSnapshot,
        regime: RegimeInput = None,
        strict: bool = True,
    ) -> Optional[Pick]:
        """Score ``snapshot``; ``None`` when the strategy does not apply."""

    def _pick(
        self,
        snapshot: StockSnapshot,
        raw_score: float,
        rating: Rating,
        metrics: dict[str, Any],
        stop_loss: Optional[float] = None,
    ) -> Pick:
        score = _round_score(raw_score)
        return Pick(
            symbol=snapshot.symbol,
            name=snapshot.name,
            price=snapshot.price,
            change=snapshot.change,
            change_percent=snapshot.change_percent,
            score=score,
            rating=rating,
            algorithm=self.name,
            timeframe=self.timeframe,
            risk=self.risk,
            stop_loss=stop_loss,
            metrics=metrics,
            content_hash=content_hash(snapshot.symbol, score, self.name, rating),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r})"


# ── RAR ───────────────────────────────────────────────────────────────────────

class RegimeAwareReversion(Strategy):
    """Mean reversion into an established uptrend, gated by market regime."""

    name = "Regime-Aware Reversion"
    code = "RAR"
    timeframe = "7d"
    risk: Risk = "Medium"

    MIN_BARS = 200
    RSI_PERIOD = 14
    RSI_ENTRY = 40.0
    STRONG_BUY_ABOVE = 80.0
    STOP_ATR_MULTIPLE = 1.5

    def score(
        self,
        snapshot: StockSnapshot,
        regime: RegimeInput = None,
        strict: bool = True,
    ) -> Optional[Pick]:
        closes = snapshot.closes
        if len(closes) < self.MIN_BARS:
            return None

        ctx = _as_context(regime)
        if not ctx.allows_long_entries:
            return None

        sma200 = sma(closes, 200)
        assert sma200 is not None
        if snapshot.price <= sma200:
            return None

        rsi_value = rsi(closes, self.RSI_PERIOD)
        raw = clamp((self.RSI_ENTRY - rsi_value) * 2 + 60)

        rating: Rating
        if rsi_value < self.RSI_ENTRY:
            rating = "STRONG BUY" if raw > self.STRONG_BUY_ABOVE else "BUY"
        elif strict:
            return None
        else:
            rating = "HOLD"

        atr_value = atr(snapshot.history)
        stop = _atr_stop(snapshot.price, atr_value, self.STOP_ATR_MULTIPLE)
        return self._pick(
            snapshot,
            raw,
            rating,
            metrics={
                "rsi": rsi_value,
                "sma200": sma200,
                "price": snapshot.price,
                "regime": ctx.label,
                "atr": atr_value,
            },
            stop_loss=stop,
        )


# ── VAM ───────────────────────────────────────────────────────────────────────

class VolatilityAdjustedMomentum(Strategy):
    """Return per unit of drawdown pain over the last 60 sessions."""

    name = "Volatility-Adjusted Momentum"
    code = "VAM"
    timeframe = "1m"
    risk: Risk = "Low"

    MIN_BARS = 50
    WINDOW = 60
    MIN_RETURN_PCT = 5.0
    EMIT_ABOVE = 60.0
    STRONG_BUY_ABOVE = 85.0

    def score(
        self,
        snapshot: StockSnapshot,
        regime: RegimeInput = None,
        strict: bool = True,
    ) -> Optional[Pick]:
        closes = snapshot.closes
        if len(closes) < self.MIN_BARS:
            return None

        window = closes[-self.WINDOW:]
        total_return = total_return_pct(window[0], snapshot.price)
        if total_return is None:
            return None

        ulcer = ulcer_index(window)
        ratio = martin_ratio(total_return, ulcer)
        raw = clamp(ratio * 10 + 40)

        rating: Rating
        if total_return >= self.MIN_RETURN_PCT and raw > self.EMIT_ABOVE:
            rating = "STRONG BUY" if raw > self.STRONG_BUY_ABOVE else "BUY"
        elif strict:
            return None
        else:
            rating = "HOLD"

        return self._pick(
            snapshot,
            raw,
            rating,
            metrics={
                "windowStartPrice": window[0],
                "price": snapshot.price,
                "totalReturn": total_return,
                "ulcerIndex": ulcer,
                "martinRatio": ratio,
                "windowBars": len(window),
            },
        )


# ── LSP ───────────────────────────────────────────────────────────────────────

class LiquidityShieldedPenny(Strategy):
    """Penny-stock momentum that must survive a slippage torture test."""

    name = "Liquidity-Shielded Penny"
    code = "LSP"
    timeframe = "24h"
    risk: Risk = "Very High"

    MIN_PRICE = 0.1          # exclusive
    MAX_PRICE = 5.0          # inclusive
    MAX_VOLUME_SHARE = 0.02
    MIN_TRADABLE_DOLLARS = 5_000.0
    SLIPPAGE_PENALTY_PCT = 3.0
    MIN_TORTURE_RETURN = 1.0
    MIN_CHANGE_PCT = 2.0
    STRONG_BUY_ABOVE = 80.0

    def score(
        self,
        snapshot: StockSnapshot,
        regime: RegimeInput = None,
        strict: bool = True,
    ) -> Optional[Pick]:
        price = snapshot.price
        if not (self.MIN_PRICE < price <= self.MAX_PRICE):
            return None

        liquidity_cap = snapshot.avg_volume * price * self.MAX_VOLUME_SHARE
        if liquidity_cap < self.MIN_TRADABLE_DOLLARS:
            return None

        torture_return = snapshot.change_percent - self.SLIPPAGE_PENALTY_PCT
        raw = clamp(torture_return * 10 + 50)

        rating: Rating
        if (
            torture_return >= self.MIN_TORTURE_RETURN
            and snapshot.change_percent >= self.MIN_CHANGE_PCT
        ):
            rating = "STRONG BUY" if raw > self.STRONG_BUY_ABOVE else "BUY"
        elif strict:
            return None
        else:
            rating = "HOLD"

        return self._pick(
            snapshot,
            raw,
            rating,
            metrics={
                "price": price,
                "avgVolume": snapshot.avg_volume,
                "liquidityCap": liquidity_cap,
                "changePercent": snapshot.change_percent,
                "slippagePenalty": self.SLIPPAGE_PENALTY_PCT,
                "tortureReturn": torture_return,
            },
        )


# ── SCS ───────────────────────────────────────────────────────────────────────

class ScientificCanSlim(Strategy):
    """CAN SLIM screen with an absolute market-regime veto."""

    name = "Scientific CAN SLIM"
    code = "SCS"
    timeframe = "1y"
    risk: Risk = "Medium"

    MIN_BARS = 200
    RS_TIERS: tuple[tuple[int, float], ...] = ((90, 40.0), (80, 30.0), (70, 20.0))
    STAGE2_WEIGHT = 30.0
    RSI_BAND = (40.0, 70.0)
    RSI_WEIGHT = 10.0
    ABOVE_SMA200_WEIGHT = 10.0
    VOL_Z_THRESHOLD = 1.5
    VOL_Z_WEIGHT = 5.0
    VCP_WEIGHT = 20.0
    INSTITUTIONAL_WEIGHT = 10.0
    SQUEEZE_WIDTH = 0.05
    VCP_MAX_REL_VOL = 0.03
    STRONG_BUY_AT = 80.0
    BUY_AT = 60.0
    STOP_ATR_MULTIPLE = 2.0

    def score(
        self,
        snapshot: StockSnapshot,
        regime: RegimeInput = None,
        strict: bool = True,
    ) -> Optional[Pick]:
        closes = snapshot.closes
        if len(closes) < self.MIN_BARS:
            return None

        ctx = _as_context(regime)
        if not ctx.allows_long_entries:
            return None

        price = snapshot.price
        rs_rating = relative_strength(closes)
        stage2 = is_stage2_uptrend(closes)
        rsi_value = rsi(closes, 14)
        sma200 = sma(closes, 200)
        sma10 = sma(closes, 10)
        vol_z = zscore(snapshot.volume, snapshot.volumes[-20:])
        atr_value = atr(snapshot.history)
        rel_vol = atr_value / price if price > 0 else 0.0
        band_width = bollinger_width(closes, 20)
        squeeze = band_width is not None and band_width < self.SQUEEZE_WIDTH
        vcp = squeeze and rel_vol < self.VCP_MAX_REL_VOL
        institutional = sma10 is not None and price > sma10

        components: dict[str, float] = {
            "rsRating": next((w for floor, w in self.RS_TIERS if rs_rating >= floor), 0.0),
            "stage2": self.STAGE2_WEIGHT if stage2 else 0.0,
            "rsiBand": (
                self.RSI_WEIGHT
                if self.RSI_BAND[0] <= rsi_value <= self.RSI_BAND[1]
                else 0.0
            ),
            "aboveSma200": self.ABOVE_SMA200_WEIGHT if sma200 is not None and price > sma200 else 0.0,
            "volumeSurge": self.VOL_Z_WEIGHT if vol_z > self.VOL_Z_THRESHOLD else 0.0,
            "vcp": self.VCP_WEIGHT if vcp else 0.0,
            "institutional": self.INSTITUTIONAL_WEIGHT if institutional else 0.0,
        }
        raw = clamp(sum(components.values()))

        rating: Rating
        if raw >= self.STRONG_BUY_AT:
            rating = "STRONG BUY"
        elif raw >= self.BUY_AT:
            rating = "BUY"
        elif strict:
            return None
        else:
            rating = "HOLD"

        stop = _atr_stop(price, atr_value, self.STOP_ATR_MULTIPLE)
        return self._pick(
            snapshot,
            raw,
            rating,
            metrics={
                "rsRating": rs_rating,
                "stage2": stage2,
                "rsi": rsi_value,
                "sma200": sma200,
                "sma10": sma10,
                "price": price,
                "volZ": vol_z,
                "atr": atr_value,
                "relVol": rel_vol,
                "bollingerWidth": band_width,
                "vcp": vcp,
                "institutionalFootprint": institutional,
                "regime": ctx.label,
                "components": components,
            },
            stop_loss=stop,
        )


def all_strategies() -> list[Strategy]:
    """Return fresh instances of every strategy, in evaluation order."""
    return [
        RegimeAwareReversion(),
        VolatilityAdjustedMomentum(),
        LiquidityShieldedPenny(),
        ScientificCanSlim(),
    ]
