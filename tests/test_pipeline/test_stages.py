"""
End-to-end tests for the concrete stages and the daily runner.

Every test runs against ``FakeProvider`` with all paths under ``tmp_path``.

What we test
------------
1. GenerateStage — picks archived, run file path recorded, empty universe
   fails the run.
2. PortfolioStage — allocation built from ``current.json``.
3. VerifyStage — matured pick classified, report written.
4. BacktestStage — online run caches history; offline replay reproduces it;
   malformed archive records are counted in the report.
5. DailyRunner — success, and ``partial`` when a later stage fails.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from stock_picks.config import UniverseConfig
from stock_picks.db.connection import get_connection
from stock_picks.db.repositories.run_repo import RunMetadataRepository
from stock_picks.errors import EmptyUniverseError
from stock_picks.ingestion.history_store import HistoryStore
from stock_picks.picks.ledger import PickLedger
from stock_picks.pipeline.backtest import BacktestStage
from stock_picks.pipeline.generate import GenerateStage
from stock_picks.pipeline.orchestrator import DailyRunner
from stock_picks.pipeline.portfolio import PortfolioStage
from stock_picks.pipeline.verify import VerifyStage

_NOW = datetime(2025, 6, 2, 21, 0, tzinfo=timezone.utc)


@pytest.fixture
def config(app_config):
    return app_config.model_copy(
        update={"universe": UniverseConfig(symbols=["PEN", "HOT", "GONE"])}
    )


@pytest.fixture
def provider(fake_provider, make_snapshot, make_bars, rising_closes):
    fake_provider.snapshots = {
        "SPY": make_snapshot("SPY", closes=rising_closes),
        "PEN": make_snapshot("PEN", price=2.0, change_percent=6.0),
        "HOT": make_snapshot("HOT", price=3.0, change_percent=8.0),
    }
    fake_provider.histories = {
        "PEN": make_bars([2.0, 2.1, 2.2, 2.3], start=date(2025, 6, 2)),
        "HOT": make_bars([3.0, 2.7, 2.5, 2.4], start=date(2025, 6, 2)),
    }
    return fake_provider


def _runs(config, stage: str):
    with get_connection(config.database.db_path) as conn:
        return RunMetadataRepository(conn).get_recent_runs(stage)


# ── Generate ──────────────────────────────────────────────────────────────────

class TestGenerateStage:
    def test_archives_picks(self, config, provider):
        stage = GenerateStage(config, provider=provider)
        run = stage.run(now=_NOW)

        assert run.status == "success"
        assert run.rows_processed == 2
        assert Path(run.artifact_path).exists()
        assert "history/2025/06/02/210000_" in Path(run.artifact_path).as_posix()
        assert [p.symbol for p in stage.result.picks] == ["HOT", "PEN"]

        current = PickLedger(config.data.ledger_dir).current_entries()
        assert [e.symbol for e in current] == ["HOT", "PEN"]
        assert current[1].simulated_entry_price == pytest.approx(2.01)
        assert _runs(config, "generate")[0].status == "success"

    def test_empty_universe_fails_run(self, config, fake_provider):
        with pytest.raises(EmptyUniverseError):
            GenerateStage(config, provider=fake_provider).run(now=_NOW)
        [run] = _runs(config, "generate")
        assert run.status == "failed"
        assert not PickLedger(config.data.ledger_dir).current_path.exists()


# ── Portfolio / verify ────────────────────────────────────────────────────────

def test_portfolio_stage(config, provider):
    GenerateStage(config, provider=provider).run(now=_NOW)
    stage = PortfolioStage(config, provider=provider)
    run = stage.run(now=_NOW)

    assert run.rows_processed == 2
    data = json.loads(Path(run.artifact_path).read_text(encoding="utf-8"))
    assert [a["symbol"] for a in data["allocations"]] == ["HOT", "PEN"]
    assert data["totalWeight"] == pytest.approx(0.4)


def test_portfolio_before_generate_is_empty(config, provider):
    stage = PortfolioStage(config, provider=provider)
    assert stage.run(now=_NOW).rows_processed == 0


def test_verify_stage(config, provider, make_snapshot):
    GenerateStage(config, provider=provider).run(now=_NOW)
    provider.snapshots["HOT"] = make_snapshot("HOT", price=3.5)
    provider.snapshot_calls.clear()

    stage = VerifyStage(config, provider=provider)
    run = stage.run(now=_NOW + timedelta(days=2))

    report = stage.result
    assert run.rows_processed == 2
    assert report["wins"] == 1
    assert report["losses"] == 1
    assert report["skippedRecords"] == 0
    assert sorted(provider.snapshot_calls) == ["HOT", "PEN"]
    assert Path(run.artifact_path).name == "pick-performance.json"


# ── Backtest ──────────────────────────────────────────────────────────────────

class TestBacktestStage:
    def test_online_then_offline(self, config, provider):
        GenerateStage(config, provider=provider).run(now=_NOW)

        online = BacktestStage(config, provider=provider)
        online.run(now=_NOW + timedelta(days=5))
        assert HistoryStore(config.data.history_cache_dir).symbols() == ["HOT", "PEN"]
        assert online.result["hitCount"] == 1

        provider.history_calls.clear()
        offline = BacktestStage(config, provider=provider)
        offline.run(now=_NOW + timedelta(days=5), offline=True)
        assert provider.history_calls == []
        assert offline.result == online.result

    def test_csv_written(self, config, provider):
        GenerateStage(config, provider=provider).run(now=_NOW)
        BacktestStage(config, provider=provider).run(now=_NOW)
        csv_path = Path(config.data.reports_dir) / "backtest-rows.csv"
        assert len(csv_path.read_text(encoding="utf-8").splitlines()) == 3

    def test_malformed_archive_records_counted(self, config, provider):
        GenerateStage(config, provider=provider).run(now=_NOW)
        bad = Path(config.data.ledger_dir) / "history" / "2025" / "06" / "01" / "bad.json"
        bad.parent.mkdir(parents=True, exist_ok=True)
        bad.write_text(json.dumps({"stocks": [{"symbol": "X"}]}), encoding="utf-8")

        stage = BacktestStage(config, provider=provider)
        stage.run(now=_NOW + timedelta(days=5))

        assert stage.result["skippedRecords"] == 1
        assert stage.result["totalPicks"] == 2
        written = json.loads(
            (Path(config.data.reports_dir) / "backtest-report.json").read_text(encoding="utf-8")
        )
        assert written["skippedRecords"] == 1


# ── Daily runner ──────────────────────────────────────────────────────────────

class TestDailyRunner:
    def test_all_stages_succeed(self, config, provider):
        result = DailyRunner(config, provider=provider).run(now=_NOW)
        assert result.status == "success"
        assert list(result.runs) == ["generate", "portfolio", "verify", "backtest"]
        assert result.errors == []

    def test_later_failure_is_partial(self, config, provider, monkeypatch):
        def broken(symbol, from_date):
            raise RuntimeError("history service down")

        monkeypatch.setattr(provider, "fetch_history", broken)
        result = DailyRunner(config, provider=provider).run(now=_NOW)

        assert result.status == "partial"
        assert "backtest" not in result.runs
        assert result.errors == ["backtest: history service down"]
        assert _runs(config, "backtest")[0].status == "failed"

    def test_generate_failure_is_fatal(self, config, fake_provider):
        with pytest.raises(EmptyUniverseError):
            DailyRunner(config, provider=fake_provider).run(now=_NOW)
