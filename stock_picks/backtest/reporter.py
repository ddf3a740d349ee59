"""
Backtest report assembly and output.

Output files (under ``reports_dir``):
  backtest-report.json   summary, algorithm ranking and every row
  backtest-rows.csv      one flat row per pick for spreadsheet analysis

Rows are ordered by ``(pickedAt, symbol, algorithm, timeframe)`` and the
JSON is written with sorted keys, so rerunning on unchanged input (same
ledger, same history, same ``generated_at``) produces identical bytes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from stock_picks.backtest.ranking import (
    LOW_SAMPLE_BELOW,
    MIN_SAMPLE_FOR_RANKING,
    rank_algorithms,
)
from stock_picks.models.pick import BacktestRow
from stock_picks.reporting.export import export_to_csv, write_json_atomic
from stock_picks.utils.time_utils import to_iso, utcnow

log = logging.getLogger(__name__)

REPORT_FILENAME = "backtest-report.json"
ROWS_CSV_FILENAME = "backtest-rows.csv"

CSV_COLUMNS = [
    "pickedAt",
    "symbol",
    "name",
    "algorithm",
    "timeframe",
    "rating",
    "score",
    "priceAtPick",
    "returnInTimeframePct",
    "returnSincePickPct",
    "minInWindow",
    "maxInWindow",
    "hit",
    "latestPrice",
    "error",
]


def sort_rows(rows: Sequence[BacktestRow]) -> list[BacktestRow]:
    return sorted(rows, key=lambda r: (r.picked_at, r.symbol, r.algorithm, r.timeframe))


def build_backtest_report(
    rows: Sequence[BacktestRow],
    generated_at: Optional[datetime] = None,
    min_sample: int = MIN_SAMPLE_FOR_RANKING,
    low_sample_below: int = LOW_SAMPLE_BELOW,
) -> dict[str, Any]:
    """Summarise backtest rows into the report dict.

    ``hitRatePct`` and ``avgReturnInTimeframePct`` are ``None`` when no row
    has a valid in-window return.
    """
    ordered = sort_rows(rows)
    valid = [r for r in ordered if r.return_in_timeframe_pct is not None]
    hit_count = sum(1 for r in ordered if r.hit is True)

    return {
        "generatedAt": to_iso(generated_at or utcnow()),
        "totalPicks": len(ordered),
        "withValidReturn": len(valid),
        "hitCount": hit_count,
        "hitRatePct": hit_count / len(valid) * 100.0 if valid else None,
        "avgReturnInTimeframePct": (
            sum(r.return_in_timeframe_pct for r in valid) / len(valid) if valid else None
        ),
        "algorithmRanking": [
            r.to_artifact() for r in rank_algorithms(ordered, min_sample, low_sample_below)
        ],
        "minSampleForRanking": min_sample,
        "rows": [r.to_artifact() for r in ordered],
    }


def write_backtest_report(report: dict[str, Any], reports_dir: Path) -> tuple[Path, Path]:
    """Write the JSON report and the flat CSV; returns both paths."""
    json_path = write_json_atomic(report, reports_dir / REPORT_FILENAME)
    csv_path = export_to_csv(report["rows"], reports_dir / ROWS_CSV_FILENAME, CSV_COLUMNS)
    log.info("Backtest report written to %s (%d rows)", json_path, report["totalPicks"])
    return json_path, csv_path


def format_ranking_lines(report: dict[str, Any]) -> list[str]:
    """Human-readable summary lines for the CLI."""
    hit_rate = report.get("hitRatePct")
    avg = report.get("avgReturnInTimeframePct")
    lines = [
        f"Hit rate: {hit_rate:.1f}% ({report['hitCount']}/{report['withValidReturn']})"
        if hit_rate is not None
        else f"Hit rate: n/a (0/{report['withValidReturn']})",
        f"Avg return in timeframe: {avg:+.2f}%" if avg is not None else "Avg return in timeframe: n/a",
    ]
    for i, r in enumerate(report.get("algorithmRanking", []), start=1):
        flag = ", low sample" if r["lowSample"] else ""
        lines.append(
            f"  {i}. {r['algorithm']}: {r['hitRatePct']:.1f}% hit, "
            f"{r['avgReturnPct']:+.2f}% avg (n={r['count']}{flag})"
        )
    return lines
