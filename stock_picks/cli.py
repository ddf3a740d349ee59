"""
Stock Picks — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Run a pipeline stage (or a read-only query).
  4. Report the result to stdout; fatal errors exit with code 1.

Install and run::

    pip install -e .
    stock-picks --help
    stock-picks init-db
    stock-picks validate-config
    stock-picks generate
    stock-picks portfolio
    stock-picks verify
    stock-picks backtest [--offline]
    stock-picks run-daily
    stock-picks show-runs --stage generate
    stock-picks status
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="stock-picks",
    help="Scientific stock-pick pipeline: generate, archive, verify and backtest.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from stock_picks.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from stock_picks.utils.logging import configure_logging
    configure_logging(config.logging)


def _parse_as_of(as_of: Optional[str]):
    """Parse ``--as-of`` into an aware UTC datetime (``None`` = now)."""
    if as_of is None:
        return None
    from stock_picks.utils.time_utils import parse_timestamp

    parsed = parse_timestamp(as_of)
    if parsed is None:
        typer.echo(f"[ERROR] Invalid --as-of timestamp: {as_of!r}", err=True)
        raise typer.Exit(code=1)
    return parsed


def _run_stage_or_exit(stage, **kwargs):
    """Run a stage; any exception becomes ``[ERROR]`` + exit code 1."""
    try:
        return stage.run(**kwargs)
    except Exception as exc:
        typer.echo(f"[ERROR] {stage.stage_name} failed: {exc}", err=True)
        raise typer.Exit(code=1)


# ── Setup commands ────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Initialize the run-audit SQLite database.  Safe to run repeatedly."""
    from stock_picks.db.connection import audit_connection
    from stock_picks.db.schema import get_existing_tables

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with audit_connection(config.database, target_path) as conn:
        tables = get_existing_tables(conn)

    typer.echo(f"  Tables: {', '.join(tables)}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print the key values."""
    from stock_picks.picks.universe import resolve_universe

    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Ledger dir:       {config.data.ledger_dir}")
    typer.echo(f"  Reports dir:      {config.data.reports_dir}")
    typer.echo(f"  Benchmark:        {config.universe.benchmark}")
    typer.echo(f"  Universe size:    {len(resolve_universe(config.universe))}")
    typer.echo(f"  Top N:            {config.engine.top_n}")
    typer.echo(f"  Request delay:    {config.provider.request_delay_ms} ms")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


# ── Pipeline commands ─────────────────────────────────────────────────────────

@app.command("generate")
def generate(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score the universe and append today's picks to the ledger."""
    from stock_picks.pipeline.generate import GenerateStage
    from stock_picks.reporting.formatters import format_picks_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = GenerateStage(config)
    run = _run_stage_or_exit(stage)
    result = stage.result

    typer.echo(f"Regime: {result.regime.label}")
    typer.echo(
        f"Fetched {result.snapshots_fetched}/{result.universe_size} symbols, "
        f"{result.candidates} candidates."
    )
    typer.echo(format_picks_table(result.picks))
    if result.runner_ups:
        typer.echo("Runner-ups:")
        for algo, pick in sorted(result.runner_ups.items()):
            typer.echo(f"  {algo}: {pick.symbol} ({pick.score:.0f})")
    typer.echo(f"[OK] {run.rows_processed} picks archived to {run.artifact_path}")


@app.command("portfolio")
def portfolio(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Build the equal-weight portfolio from the latest picks."""
    from stock_picks.pipeline.portfolio import PortfolioStage
    from stock_picks.reporting.formatters import format_portfolio_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = PortfolioStage(config)
    run = _run_stage_or_exit(stage)
    typer.echo(format_portfolio_table(stage.result))
    typer.echo(f"[OK] Portfolio written to {run.artifact_path}")


@app.command("verify")
def verify(
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Reference time (ISO-8601). Defaults to now."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Mark every archived pick WIN / LOSS / PENDING."""
    from stock_picks.pipeline.verify import VerifyStage
    from stock_picks.reporting.formatters import format_performance_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = VerifyStage(config)
    run = _run_stage_or_exit(stage, now=_parse_as_of(as_of))
    typer.echo(format_performance_summary(stage.result))
    typer.echo(f"[OK] Performance report written to {run.artifact_path}")


@app.command("backtest")
def backtest(
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Replay against the cached Parquet history instead of fetching.",
    ),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Timestamp recorded as generatedAt (ISO-8601)."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Retroactively evaluate every archived pick over its timeframe window."""
    from stock_picks.backtest.reporter import format_ranking_lines
    from stock_picks.pipeline.backtest import BacktestStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    stage = BacktestStage(config)
    run = _run_stage_or_exit(stage, now=_parse_as_of(as_of), offline=offline)
    for line in format_ranking_lines(stage.result):
        typer.echo(line)
    typer.echo(f"[OK] Backtest report written to {run.artifact_path}")


@app.command("run-daily")
def run_daily(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Run generate → portfolio → verify → backtest in one pass."""
    from stock_picks.pipeline.orchestrator import DailyRunner

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        result = DailyRunner(config).run()
    except Exception as exc:
        typer.echo(f"[ERROR] Daily run failed: {exc}", err=True)
        raise typer.Exit(code=1)

    for name, run in result.runs.items():
        typer.echo(f"  {name:<10} {run.status:<8} rows={run.rows_processed}  {run.artifact_path or ''}")
    for err in result.errors:
        typer.echo(f"  [WARN] {err}")
    if result.status != "success":
        typer.echo(f"[ERROR] Daily run finished with status '{result.status}'.", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Daily run complete.")


# ── Inspection commands ───────────────────────────────────────────────────────

@app.command("show-runs")
def show_runs(
    stage: Optional[str] = typer.Option(
        None, "--stage", help="Filter by stage (generate, verify, backtest, portfolio)."
    ),
    limit: int = typer.Option(20, "--limit", help="Maximum rows to show."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """List recent pipeline runs from the audit database."""
    from stock_picks.db.connection import audit_connection
    from stock_picks.db.repositories.run_repo import RunMetadataRepository
    from stock_picks.reporting.formatters import format_runs_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with audit_connection(config.database) as conn:
        runs = RunMetadataRepository(conn).get_recent_runs(stage, limit=limit)

    typer.echo(format_runs_table(runs))


@app.command("status")
def status(
    max_hours: float = typer.Option(
        26.0, "--max-hours", help="Age beyond which an artifact is reported stale."
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Show the age of the ledger and of each report artifact."""
    from stock_picks.backtest.reporter import REPORT_FILENAME
    from stock_picks.picks.ledger import PickLedger
    from stock_picks.pipeline.verify import PERFORMANCE_FILENAME
    from stock_picks.portfolio.optimizer import PORTFOLIO_FILENAME
    from stock_picks.reporting.formatters import format_freshness_banner
    from stock_picks.reporting.reader import check_freshness, load_json_report, report_timestamp

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    reports_dir = Path(config.data.reports_dir)
    artifacts = [
        ("current picks", PickLedger(config.data.ledger_dir).current_path),
        ("performance", reports_dir / PERFORMANCE_FILENAME),
        ("backtest", reports_dir / REPORT_FILENAME),
        ("portfolio", reports_dir / PORTFOLIO_FILENAME),
    ]
    for label, path in artifacts:
        report = load_json_report(path)
        typer.echo(f"{label}: {path}")
        if report is None:
            typer.echo("  (not found)")
            continue
        is_fresh, age = check_freshness(report_timestamp(report), max_hours=max_hours)
        typer.echo(format_freshness_banner(is_fresh, age))


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
