"""
Stock universe.

The benchmark (SPY) is fetched for regime detection only and is never
scored.  The remaining symbols span mega-cap technology, financials,
healthcare, consumer, industrials, energy and materials, plus a
high-beta / sub-$5 tail so the penny strategy has candidates.
"""

from __future__ import annotations

from stock_picks.config import UniverseConfig

BENCHMARK_SYMBOL = "SPY"

DEFAULT_UNIVERSE: tuple[str, ...] = (
    # Technology
    "AAPL", "MSFT", "NVDA", "AMZN", "GOOGL", "META", "TSLA", "AVGO", "COST",
    "V", "MA", "NFLX", "AMD", "LRCX", "CRM", "ADBE", "ORCL", "INTC", "QCOM",
    "NOW", "SNOW", "PANW",
    # Financials / healthcare / staples / energy
    "JPM", "UNH", "LLY", "JNJ", "PG", "XOM", "CAT", "GE", "BAC", "WFC", "GS",
    "MS", "BLK", "AXP", "ABBV", "MRK", "PFE", "TMO", "DHR", "ABT",
    # Consumer / industrials
    "WMT", "HD", "MCD", "NKE", "SBUX", "TGT", "LOW", "DE", "HON", "UPS", "RTX",
    "LMT", "BA",
    # Energy / materials
    "CVX", "COP", "SLB", "EOG", "LIN", "APD", "FCX",
    # High beta / fintech / EV
    "COIN", "MSTR", "UPST", "AFRM", "PLTR", "SOFI", "HOOD", "SQ", "RIVN",
    "LCID", "F", "GM", "ENPH", "FSLR",
    # Sub-$5 candidates
    "GME", "AMC", "SNDL", "MULN", "XELA", "HSTO", "BB", "NAKD",
)


def resolve_universe(config: UniverseConfig | None = None) -> list[str]:
    """Return the de-duplicated, upper-cased symbols to score.

    ``config.symbols`` replaces the built-in list when non-empty.  The
    benchmark is always excluded from the scoring pool.
    """
    benchmark = (config.benchmark if config else BENCHMARK_SYMBOL).strip().upper()
    source = config.symbols if config and config.symbols else DEFAULT_UNIVERSE

    seen: set[str] = set()
    symbols: list[str] = []
    for raw in source:
        sym = raw.strip().upper()
        if not sym or sym == benchmark or sym in seen:
            continue
        seen.add(sym)
        symbols.append(sym)
    return symbols
