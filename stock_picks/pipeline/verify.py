"""
VerifyStage — classify every archived pick and write ``pick-performance.json``.

Current prices are fetched at most once per symbol per run and only for
picks whose horizon has elapsed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from stock_picks.models.meta import RunMetadata
from stock_picks.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)

PERFORMANCE_FILENAME = "pick-performance.json"


class VerifyStage(PipelineStage):
    """Verify archived picks against current prices."""

    stage_name = "verify"

    def _execute(
        self,
        run: RunMetadata,
        now: Optional[datetime] = None,
        **kwargs: Any,
    ) -> int:
        from stock_picks.reporting.export import write_json_atomic
        from stock_picks.utils.time_utils import utcnow
        from stock_picks.verification.verifier import (
            CachedPriceLookup,
            build_performance_report,
            verify_entries,
        )

        now = now or utcnow()
        read = self._ledger().read_entries()
        if not read.entries:
            logger.warning("Ledger is empty; nothing to verify.")

        lookup = CachedPriceLookup(self._get_provider().fetch_stock_data)
        verified = verify_entries(read.entries, lookup, now)
        report = build_performance_report(
            verified, now, top_hits=self.config.verification.top_hits
        )
        report["skippedRecords"] = read.skipped

        path = write_json_atomic(report, Path(self.config.data.reports_dir) / PERFORMANCE_FILENAME)
        logger.info(
            "Verified %d picks: %d wins, %d losses, %d pending (%d prices fetched)",
            report["totalPicks"], report["wins"], report["losses"],
            report["pending"], lookup.fetched,
        )
        run.artifact_path = str(path)
        self.result = report
        return len(verified)
