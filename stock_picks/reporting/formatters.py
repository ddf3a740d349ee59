"""
ASCII terminal formatters for CLI commands.

All formatters accept already-built report dicts / models and return plain
multi-line strings suitable for ``typer.echo()``.
"""

from __future__ import annotations

from typing import Any, Sequence

from stock_picks.models.meta import RunMetadata
from stock_picks.models.pick import Pick
from stock_picks.models.portfolio import PortfolioResult


def format_freshness_banner(is_fresh: bool, age_hours: float | None) -> str:
    if age_hours is None:
        return "  [AGE UNKNOWN] timestamp not available"
    if is_fresh:
        return f"  [FRESH] Generated {age_hours:.1f}h ago"
    return f"  [STALE] Generated {age_hours:.1f}h ago -- rerun before acting on this"


def format_picks_table(picks: Sequence[Pick]) -> str:
    """One line per pick, in the order given."""
    if not picks:
        return "  (no picks)"
    lines = [
        f"  {'#':>3}  {'Symbol':<7} {'Score':>5}  {'Rating':<10}  {'TF':>4}  {'Price':>10}  Algorithm",
        "  " + "-" * 72,
    ]
    for i, p in enumerate(picks, start=1):
        price = f"{p.price:,.2f}" if p.price is not None else "-"
        lines.append(
            f"  {i:>3}  {p.symbol:<7} {p.score:>5.0f}  {p.rating:<10}  "
            f"{p.timeframe:>4}  {price:>10}  {p.algorithm}"
        )
    return "\n".join(lines)


def format_portfolio_table(result: PortfolioResult) -> str:
    lines = [
        f"  Positions: {result.total_positions}   Total weight: {result.total_weight:.4f}",
    ]
    if not result.allocations:
        lines.append("  (empty portfolio)")
        return "\n".join(lines)
    lines.append(f"  {'Symbol':<7} {'Weight':>7}  {'Per $10k':>9}  {'Entry':>10}  {'Score':>5}")
    lines.append("  " + "-" * 46)
    for a in result.allocations:
        lines.append(
            f"  {a.symbol:<7} {a.weight:>7.2%}  {a.notional10k:>9,.2f}  "
            f"{a.entry_price:>10,.2f}  {a.score:>5.0f}"
        )
    return "\n".join(lines)


def format_performance_summary(report: dict[str, Any]) -> str:
    lines = [
        f"  Total picks: {report['totalPicks']}  verified: {report['verified']}  "
        f"pending: {report['pending']}",
        f"  Wins: {report['wins']}  Losses: {report['losses']}  "
        f"Win rate: {report['winRate']:.1f}%  Avg return: {report['avgReturn']:+.2f}%",
    ]
    for algo, stats in report.get("byAlgorithm", {}).items():
        lines.append(
            f"    {algo or '(unknown)'}: {stats['wins']}/{stats['verified']} "
            f"({stats['winRate']:.1f}%), avg {stats['avgReturn']:+.2f}%"
        )
    return "\n".join(lines)


def format_runs_table(runs: Sequence[RunMetadata]) -> str:
    if not runs:
        return "  (no runs recorded)"
    lines = [
        f"  {'Started (UTC)':<20} {'Stage':<10} {'Status':<8} {'Rows':>5}  Slug",
        "  " + "-" * 76,
    ]
    for r in runs:
        lines.append(
            f"  {r.started_at:%Y-%m-%d %H:%M:%S}  {r.pipeline_stage:<10} {r.status:<8} "
            f"{r.rows_processed:>5}  {r.run_slug}"
        )
        if r.error_message:
            lines.append(f"      error: {r.error_message}")
    return "\n".join(lines)
