"""
Daily run orchestration.

``DailyRunner`` executes the full daily sequence with one shared provider
and one reference time:

  Step 1 — Generate:   score the universe, archive the run (fatal on failure).
  Step 2 — Portfolio:  equal-weight allocation of the new picks.
  Step 3 — Verify:     WIN / LOSS / PENDING for every archived pick.
  Step 4 — Backtest:   forward-window analysis of every archived pick.

Failure isolation
-----------------
- Generate failure:  re-raised; nothing downstream would be meaningful.
- Any later stage:   recorded in ``errors`` and the run continues;
                     overall status becomes ``"partial"``.

Each stage still writes its own ``run_metadata`` row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from stock_picks.config import AppConfig
from stock_picks.models.meta import RunMetadata
from stock_picks.pipeline.backtest import BacktestStage
from stock_picks.pipeline.generate import GenerateStage
from stock_picks.pipeline.portfolio import PortfolioStage
from stock_picks.pipeline.verify import VerifyStage
from stock_picks.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class DailyRunResult:
    """Outcome of one ``DailyRunner.run()``.

    Attributes:
        started_at: Reference time shared by every stage.
        runs:       ``RunMetadata`` per completed stage, keyed by stage name.
        errors:     ``"stage: message"`` for each stage that failed.
        status:     ``"success"`` or ``"partial"``.
    """

    started_at: datetime
    runs:       dict[str, RunMetadata] = field(default_factory=dict)
    errors:     list[str]              = field(default_factory=list)
    status:     str                    = "started"


class DailyRunner:
    """Run generate → portfolio → verify → backtest.

    Args:
        config:   AppConfig for this run.
        db_path:  Override run-audit DB path.
        provider: Shared market data provider; a Yahoo client when ``None``.
    """

    def __init__(
        self,
        config: AppConfig,
        db_path: Optional[str] = None,
        provider: Any = None,
    ) -> None:
        self.config = config
        self.db_path = db_path
        self.provider = provider

    def run(self, now: Optional[datetime] = None) -> DailyRunResult:
        now = now or utcnow()
        result = DailyRunResult(started_at=now)

        provider = self.provider
        owned = None
        if provider is None:
            from stock_picks.ingestion.yahoo_client import YahooChartClient

            provider = owned = YahooChartClient.from_config(self.config.provider)

        try:
            generate = GenerateStage(self.config, db_path=self.db_path, provider=provider)
            result.runs["generate"] = generate.run(now=now)

            for stage_cls in (PortfolioStage, VerifyStage, BacktestStage):
                stage = stage_cls(self.config, db_path=self.db_path, provider=provider)
                try:
                    result.runs[stage.stage_name] = stage.run(now=now)
                except Exception as exc:
                    logger.warning("Stage %s failed; continuing: %s", stage.stage_name, exc)
                    result.errors.append(f"{stage.stage_name}: {exc}")
        finally:
            if owned is not None:
                owned.close()

        result.status = "partial" if result.errors else "success"
        logger.info(
            "Daily run %s | stages=%s | errors=%d",
            result.status, ",".join(result.runs), len(result.errors),
        )
        return result
