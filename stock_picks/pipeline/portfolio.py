"""
PortfolioStage — equal-weight portfolio from the latest ledger run.

Reads ``current.json`` and writes ``daily-portfolio.json``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from stock_picks.models.meta import RunMetadata
from stock_picks.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class PortfolioStage(PipelineStage):
    """Allocate the latest picks into an equal-weight portfolio."""

    stage_name = "portfolio"

    def _execute(
        self,
        run: RunMetadata,
        now: Optional[datetime] = None,
        **kwargs: Any,
    ) -> int:
        from stock_picks.portfolio.optimizer import equal_weight_portfolio, write_portfolio
        from stock_picks.utils.time_utils import utcnow

        entries = self._ledger().current_entries()
        if not entries:
            logger.warning("No current picks; run 'generate' first.")

        cfg = self.config.portfolio
        result = equal_weight_portfolio(
            entries,
            max_positions=cfg.max_positions,
            max_weight=cfg.max_weight_per_position,
            now=now or utcnow(),
            reference_notional=cfg.reference_notional,
        )
        path = write_portfolio(result, Path(self.config.data.reports_dir))
        run.artifact_path = str(path)
        self.result = result
        return result.total_positions
