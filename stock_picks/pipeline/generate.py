"""
GenerateStage — score the universe and append the run to the ledger.

Flow:
  1. Resolve the universe from ``config.universe``.
  2. ``generate_picks()``: benchmark regime once, every strategy on every
     snapshot, top ``config.engine.top_n`` by score.
  3. Stamp entries (``picked_at``, slippage-adjusted entry, ``pick_hash``).
  4. ``PickLedger.append_run()``: new run file, refreshed ``current.json``
     and ``ledger-index.json``.

Returns the number of picks archived.  ``EmptyUniverseError`` and
``LedgerWriteError`` propagate and fail the run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from stock_picks.models.meta import RunMetadata
from stock_picks.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class GenerateStage(PipelineStage):
    """Generate today's picks and archive them."""

    stage_name = "generate"

    def _execute(
        self,
        run: RunMetadata,
        now: Optional[datetime] = None,
        **kwargs: Any,
    ) -> int:
        from stock_picks.picks.engine import generate_picks, to_ledger_entries
        from stock_picks.picks.universe import resolve_universe
        from stock_picks.utils.time_utils import utcnow

        now = now or utcnow()
        result = generate_picks(
            provider=self._get_provider(),
            universe=resolve_universe(self.config.universe),
            benchmark=self.config.universe.benchmark,
            top_n=self.config.engine.top_n,
            now=now,
        )
        entries = to_ledger_entries(result.picks, now, self.config.engine.slippage_pct)

        path = self._ledger().append_run(
            entries,
            generated_at=now,
            run_id=run.run_slug.replace("-", ""),
            regime=result.regime,
            runner_ups=result.runner_ups,
        )
        run.artifact_path = str(path)
        self.result = result
        return len(entries)
