"""
BacktestStage — retroactive analysis of every archived pick.

Online (default): history comes from the provider and is cached to the
Parquet history store.  Offline: history is read from that store only, so
the report can be regenerated without network access.

Writes ``backtest-report.json`` and ``backtest-rows.csv`` to
``config.data.reports_dir``.  Malformed ledger records are counted in the
report as ``skippedRecords``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from stock_picks.models.meta import RunMetadata
from stock_picks.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class BacktestStage(PipelineStage):
    """Backtest archived picks against their forward price paths."""

    stage_name = "backtest"

    def _execute(
        self,
        run: RunMetadata,
        now: Optional[datetime] = None,
        offline: bool = False,
        **kwargs: Any,
    ) -> int:
        from stock_picks.backtest.evaluator import run_backtest
        from stock_picks.backtest.reporter import build_backtest_report, write_backtest_report
        from stock_picks.ingestion.history_store import CachedHistoryProvider, HistoryStore
        from stock_picks.utils.time_utils import utcnow

        now = now or utcnow()
        store = HistoryStore(self.config.data.history_cache_dir)
        read = self._ledger().read_entries()

        if offline:
            logger.info("Offline backtest from %s", store.cache_dir)
            rows = run_backtest(read.entries, CachedHistoryProvider(store))
        else:
            rows = run_backtest(read.entries, self._get_provider(), store=store)

        report = build_backtest_report(
            rows,
            generated_at=now,
            min_sample=self.config.backtest.min_sample_for_ranking,
            low_sample_below=self.config.backtest.low_sample_below,
        )
        report["skippedRecords"] = read.skipped
        json_path, _ = write_backtest_report(report, Path(self.config.data.reports_dir))
        run.artifact_path = str(json_path)
        self.result = report
        return len(rows)
