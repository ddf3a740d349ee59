"""Per-algorithm hit-rate ranking over backtest rows."""

from __future__ import annotations

from typing import Sequence

from stock_picks.models.pick import AlgorithmRanking, BacktestRow

MIN_SAMPLE_FOR_RANKING = 2
LOW_SAMPLE_BELOW = 5
UNKNOWN_ALGORITHM = "Unknown"


def rank_algorithms(
    rows: Sequence[BacktestRow],
    min_sample: int = MIN_SAMPLE_FOR_RANKING,
    low_sample_below: int = LOW_SAMPLE_BELOW,
) -> list[AlgorithmRanking]:
    """Rank algorithms by hit rate over rows with a valid in-window return.

    Algorithms with fewer than ``min_sample`` valid rows are left out;
    those below ``low_sample_below`` are flagged ``low_sample``.  Ordered by
    hit rate descending, then algorithm name.
    """
    buckets: dict[str, tuple[int, list[float]]] = {}
    for row in rows:
        if row.return_in_timeframe_pct is None:
            continue
        algo = row.algorithm or UNKNOWN_ALGORITHM
        hits, returns = buckets.get(algo, (0, []))
        returns.append(row.return_in_timeframe_pct)
        buckets[algo] = (hits + (1 if row.hit else 0), returns)

    ranking = [
        AlgorithmRanking(
            algorithm=algo,
            hit_rate_pct=hits / len(returns) * 100.0,
            avg_return_pct=sum(returns) / len(returns),
            count=len(returns),
            low_sample=len(returns) < low_sample_below,
        )
        for algo, (hits, returns) in buckets.items()
        if len(returns) >= min_sample
    ]
    ranking.sort(key=lambda r: (-r.hit_rate_pct, r.algorithm))
    return ranking
