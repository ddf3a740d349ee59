"""
Yahoo Finance chart client.

API:   https://query1.finance.yahoo.com/v8/finance/chart/{symbol}
       ?interval=1d&range=1y   (snapshots)
       ?interval=1d&range=2y   (backtest history)

No credentials are required.  Requests are sequential with a politeness
delay (``provider.request_delay_ms``, default 200 ms) between calls.

Every public method is fault-isolated per symbol: transport errors, non-2xx
responses and malformed payloads are logged at WARNING and surface as
``None``, never as an exception that would abort a batch.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Sequence

import httpx

from stock_picks.config import ProviderConfig
from stock_picks.models.market import PriceBar, StockSnapshot, normalize_history

logger = logging.getLogger(__name__)

AVG_VOLUME_LOOKBACK = 50


class YahooChartClient:
    """``MarketDataProvider`` backed by the Yahoo v8 chart endpoint.

    Usage::

        client = YahooChartClient.from_config(config.provider)
        snap = client.fetch_stock_data("AAPL")
        snaps = client.fetch_multiple_stocks(["AAPL", "MSFT"])
        bars = client.fetch_history("AAPL", date(2025, 6, 1))

    Attributes:
        base_url:         Chart endpoint without the trailing symbol.
        snapshot_range:   ``range`` parameter for snapshot requests.
        history_range:    ``range`` parameter for history requests.
        request_delay_ms: Pause between consecutive requests.
        batch_size:       Progress is logged every ``batch_size`` symbols.
    """

    def __init__(
        self,
        base_url: str = "https://query1.finance.yahoo.com/v8/finance/chart",
        snapshot_range: str = "1y",
        history_range: str = "2y",
        timeout_seconds: float = 15.0,
        request_delay_ms: int = 200,
        batch_size: int = 5,
        user_agent: str = "Mozilla/5.0 (compatible; stock-picks/0.1)",
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.snapshot_range = snapshot_range
        self.history_range = history_range
        self.request_delay_ms = request_delay_ms
        self.batch_size = max(1, batch_size)
        self._client = client or httpx.Client(
            timeout=timeout_seconds,
            headers={"User-Agent": user_agent},
        )
        self._sleep = sleep
        self._requests_made = 0

    @classmethod
    def from_config(cls, cfg: ProviderConfig, **kwargs: Any) -> "YahooChartClient":
        return cls(
            base_url=cfg.base_url,
            snapshot_range=cfg.snapshot_range,
            history_range=cfg.history_range,
            timeout_seconds=cfg.timeout_seconds,
            request_delay_ms=cfg.request_delay_ms,
            batch_size=cfg.batch_size,
            user_agent=cfg.user_agent,
            **kwargs,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "YahooChartClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── Public API ────────────────────────────────────────────────────────────

    def fetch_stock_data(self, symbol: str) -> Optional[StockSnapshot]:
        """Fetch the current quote and one year of daily bars for ``symbol``."""
        result = self._get_chart(symbol, self.snapshot_range)
        if result is None:
            return None
        try:
            return _parse_snapshot(symbol, result)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Malformed chart payload for %s: %s", symbol, exc)
            return None

    def fetch_multiple_stocks(self, symbols: Sequence[str]) -> list[StockSnapshot]:
        """Fetch snapshots sequentially; symbols that fail are omitted."""
        snapshots: list[StockSnapshot] = []
        for i, symbol in enumerate(symbols, start=1):
            snap = self.fetch_stock_data(symbol)
            if snap is not None:
                snapshots.append(snap)
            if i % self.batch_size == 0 or i == len(symbols):
                logger.info("Fetched %d/%d symbols (%d ok)", i, len(symbols), len(snapshots))
        return snapshots

    def fetch_history(self, symbol: str, from_date: date) -> Optional[list[PriceBar]]:
        """Daily bars on or after ``from_date`` within the history range."""
        result = self._get_chart(symbol, self.history_range)
        if result is None:
            return None
        try:
            bars = _parse_bars(result)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Malformed history payload for %s: %s", symbol, exc)
            return None
        return [b for b in bars if b.date >= from_date]

    # ── HTTP ──────────────────────────────────────────────────────────────────

    def _get_chart(self, symbol: str, range_: str) -> Optional[dict[str, Any]]:
        self._throttle()
        url = f"{self.base_url}/{symbol.strip().upper()}"
        try:
            resp = self._client.get(url, params={"interval": "1d", "range": range_})
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Failed to fetch %s: HTTP %d", symbol, exc.response.status_code
            )
            return None
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch %s: %s", symbol, exc)
            return None

        results = (payload.get("chart") or {}).get("result") or []
        if not results:
            logger.warning("No chart result for %s", symbol)
            return None
        return results[0]

    def _throttle(self) -> None:
        if self._requests_made and self.request_delay_ms > 0:
            self._sleep(self.request_delay_ms / 1000.0)
        self._requests_made += 1


# ── Payload parsing ───────────────────────────────────────────────────────────

def _parse_bars(result: dict[str, Any]) -> list[PriceBar]:
    timestamps = result.get("timestamp") or []
    quotes = (result.get("indicators") or {}).get("quote") or [{}]
    quote = quotes[0] or {}
    opens   = quote.get("open")   or []
    highs   = quote.get("high")   or []
    lows    = quote.get("low")    or []
    closes  = quote.get("close")  or []
    volumes = quote.get("volume") or []

    def _at(values: list, i: int) -> Optional[float]:
        return values[i] if i < len(values) and values[i] is not None else None

    bars: list[PriceBar] = []
    for i, ts in enumerate(timestamps):
        close = _at(closes, i)
        if close is None or close <= 0:
            continue
        bars.append(
            PriceBar(
                date=datetime.fromtimestamp(ts, tz=timezone.utc).date(),
                open=_at(opens, i),
                high=_at(highs, i) or close,
                low=_at(lows, i) or close,
                close=close,
                volume=_at(volumes, i) or 0.0,
            )
        )
    return normalize_history(bars)


def _parse_snapshot(symbol: str, result: dict[str, Any]) -> Optional[StockSnapshot]:
    meta = result.get("meta") or {}
    history = _parse_bars(result)

    price = meta.get("regularMarketPrice") or meta.get("previousClose")
    if not price and history:
        price = history[-1].close
    if not price or price <= 0:
        logger.warning("No usable price for %s", symbol)
        return None

    previous_close = meta.get("previousClose")
    if not previous_close:
        previous_close = history[-2].close if len(history) >= 2 else price
    change = price - previous_close
    change_percent = change / previous_close * 100.0 if previous_close else 0.0

    recent = [b.volume for b in history[-AVG_VOLUME_LOOKBACK:] if b.volume > 0]
    avg_volume = (
        sum(recent) / len(recent) if recent else float(meta.get("regularMarketVolume") or 0)
    )
    volume = meta.get("regularMarketVolume") or (history[-1].volume if history else 0.0)

    return StockSnapshot(
        symbol=symbol,
        name=meta.get("longName") or meta.get("shortName") or symbol.upper(),
        price=float(price),
        change=change,
        change_percent=change_percent,
        volume=float(volume),
        avg_volume=avg_volume,
        market_cap=meta.get("marketCap"),
        pe=meta.get("trailingPE"),
        history=history,
    )
