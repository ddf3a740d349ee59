"""
Tests for the Yahoo chart client.

All HTTP traffic goes through ``httpx.MockTransport``; no network access.

What we test
------------
1. Snapshot parsing — price, change, average volume and name fallbacks.
2. Bar parsing — null closes dropped, high/low fall back to close.
3. Fault isolation — HTTP errors, transport errors, malformed JSON and
   empty results all yield ``None``.
4. Batch fetch — failures omitted, order preserved, politeness delay
   between (not before) requests.
5. History fetch — ``range`` parameter and ``from_date`` filter.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Optional

import httpx
import pytest

from stock_picks.config import ProviderConfig
from stock_picks.ingestion.yahoo_client import YahooChartClient

_JAN_1_2025 = 1735689600  # 2025-01-01T00:00:00Z
_DAY = 86_400


def _chart(
    closes: list[Optional[float]],
    meta: Optional[dict[str, Any]] = None,
    volumes: Optional[list[Optional[float]]] = None,
    highs: Optional[list[Optional[float]]] = None,
) -> dict[str, Any]:
    n = len(closes)
    return {
        "chart": {
            "result": [
                {
                    "meta": meta if meta is not None else {},
                    "timestamp": [_JAN_1_2025 + i * _DAY for i in range(n)],
                    "indicators": {
                        "quote": [
                            {
                                "open": closes,
                                "high": highs if highs is not None else closes,
                                "low": closes,
                                "close": closes,
                                "volume": volumes if volumes is not None else [1000] * n,
                            }
                        ]
                    },
                }
            ],
            "error": None,
        }
    }


def _make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    sleeps: Optional[list[float]] = None,
    **kwargs: Any,
) -> YahooChartClient:
    recorded = sleeps if sleeps is not None else []
    return YahooChartClient(
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=recorded.append,
        **kwargs,
    )


def _routes(payloads: dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        symbol = request.url.path.rsplit("/", 1)[-1]
        if symbol not in payloads:
            return httpx.Response(404, json={"chart": {"result": None}})
        return httpx.Response(200, json=payloads[symbol])
    return handler


# ── Snapshot parsing ──────────────────────────────────────────────────────────

class TestFetchStockData:
    def test_parses_meta_quote(self) -> None:
        payload = _chart(
            [10.0, 11.0, 12.0],
            meta={
                "regularMarketPrice": 12.0,
                "previousClose": 10.0,
                "regularMarketVolume": 5000,
                "longName": "Acme Corp",
                "marketCap": 1e9,
                "trailingPE": 15.5,
            },
            volumes=[100, 200, 300],
        )
        client = _make_client(_routes({"ACME": payload}))
        snap = client.fetch_stock_data("acme")

        assert snap is not None
        assert snap.symbol == "ACME"
        assert snap.name == "Acme Corp"
        assert snap.price == 12.0
        assert snap.change == pytest.approx(2.0)
        assert snap.change_percent == pytest.approx(20.0)
        assert snap.volume == 5000
        assert snap.avg_volume == pytest.approx(200.0)
        assert snap.market_cap == 1e9
        assert snap.pe == 15.5
        assert len(snap.history) == 3
        assert snap.history[0].date == date(2025, 1, 1)

    def test_falls_back_to_history(self) -> None:
        payload = _chart([10.0, 20.0, 25.0], meta={"shortName": "Short"})
        snap = _make_client(_routes({"X": payload})).fetch_stock_data("X")
        assert snap is not None
        assert snap.price == 25.0
        assert snap.change == pytest.approx(5.0)
        assert snap.change_percent == pytest.approx(25.0)
        assert snap.name == "Short"

    def test_name_defaults_to_symbol(self) -> None:
        snap = _make_client(_routes({"X": _chart([5.0, 6.0])})).fetch_stock_data("X")
        assert snap is not None
        assert snap.name == "X"

    def test_null_closes_dropped(self) -> None:
        payload = _chart([10.0, None, 12.0], highs=[None, None, 13.0])
        snap = _make_client(_routes({"X": payload})).fetch_stock_data("X")
        assert snap is not None
        assert snap.closes == [10.0, 12.0]
        assert snap.history[0].high == 10.0
        assert snap.history[1].high == 13.0

    def test_no_usable_price(self) -> None:
        payload = _chart([None, None])
        assert _make_client(_routes({"X": payload})).fetch_stock_data("X") is None


# ── Fault isolation ───────────────────────────────────────────────────────────

class TestFailures:
    def test_http_error(self) -> None:
        assert _make_client(_routes({})).fetch_stock_data("NOPE") is None

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert _make_client(handler).fetch_stock_data("X") is None

    def test_malformed_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>not json</html>")

        assert _make_client(handler).fetch_stock_data("X") is None

    def test_empty_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"chart": {"result": []}})

        assert _make_client(handler).fetch_stock_data("X") is None
        assert _make_client(handler).fetch_history("X", date(2025, 1, 1)) is None


# ── Batch fetch / throttling ──────────────────────────────────────────────────

class TestFetchMultiple:
    def test_failures_omitted_in_order(self) -> None:
        client = _make_client(_routes({"A": _chart([1.0, 2.0]), "C": _chart([3.0, 4.0])}))
        snaps = client.fetch_multiple_stocks(["A", "B", "C"])
        assert [s.symbol for s in snaps] == ["A", "C"]

    def test_delay_between_requests(self) -> None:
        sleeps: list[float] = []
        client = _make_client(
            _routes({"A": _chart([1.0]), "B": _chart([2.0]), "C": _chart([3.0])}),
            sleeps=sleeps,
            request_delay_ms=200,
        )
        client.fetch_multiple_stocks(["A", "B", "C"])
        assert sleeps == [0.2, 0.2]

    def test_zero_delay_never_sleeps(self) -> None:
        sleeps: list[float] = []
        client = _make_client(
            _routes({"A": _chart([1.0]), "B": _chart([2.0])}),
            sleeps=sleeps,
            request_delay_ms=0,
        )
        client.fetch_multiple_stocks(["A", "B"])
        assert sleeps == []


# ── History fetch ─────────────────────────────────────────────────────────────

class TestFetchHistory:
    def test_filters_from_date_and_uses_history_range(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params["range"])
            return httpx.Response(200, json=_chart([1.0, 2.0, 3.0, 4.0]))

        bars = _make_client(handler, history_range="5y").fetch_history("X", date(2025, 1, 3))
        assert bars is not None
        assert [b.date for b in bars] == [date(2025, 1, 3), date(2025, 1, 4)]
        assert seen == ["5y"]

    def test_snapshot_uses_snapshot_range(self) -> None:
        seen: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            return httpx.Response(200, json=_chart([1.0]))

        _make_client(handler).fetch_stock_data("X")
        assert seen == [{"interval": "1d", "range": "1y"}]


def test_from_config() -> None:
    cfg = ProviderConfig(request_delay_ms=0, batch_size=3, history_range="3y")
    client = YahooChartClient.from_config(
        cfg, client=httpx.Client(transport=httpx.MockTransport(_routes({})))
    )
    assert client.request_delay_ms == 0
    assert client.batch_size == 3
    assert client.history_range == "3y"
    client.close()
