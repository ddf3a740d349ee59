"""
Abstract base class for all pipeline stages.

Every stage follows the same contract:
  1. Receive ``AppConfig`` (and optionally a market data provider) at
     construction.
  2. ``run(**kwargs)`` is the sole public API.
  3. ``run()`` creates a ``RunMetadata`` record, calls ``_execute()``, and
     persists the run record with its final status.
  4. ``_execute()`` is the stage-specific implementation.

Stages never swallow exceptions: a failing ``_execute()`` is recorded as
``status='failed'`` and re-raised.

Usage::

    stage = GenerateStage(config=app_config)
    run = stage.run(now=utcnow())
    print(run.rows_processed, run.artifact_path)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import uuid4

from stock_picks.config import AppConfig
from stock_picks.models.meta import RunMetadata
from stock_picks.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PipelineStage(ABC):
    """Abstract base for all pipeline stages.

    Attributes:
        stage_name: Identifier matching a valid ``RunMetadata.pipeline_stage``.
        config:     The application configuration for this run.
        db_path:    Run-audit database path (defaults to ``config.database.db_path``).
        provider:   Market data provider; a Yahoo client is created on first
                    use (and closed after the run) when none is injected.
        result:     Stage-specific result object of the last successful run.
    """

    stage_name: str

    def __init__(
        self,
        config: AppConfig,
        db_path: str | None = None,
        provider: Any = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.database.db_path
        self.provider = provider
        self.result: Any = None
        self._owned_provider: Optional[Any] = None

    def run(self, **kwargs: Any) -> RunMetadata:
        """Execute this pipeline stage.

        Returns:
            ``RunMetadata`` with final ``status``, ``rows_processed``,
            ``artifact_path`` and ``finished_at`` set.

        Raises:
            Exception: Re-raises any exception from ``_execute()`` after
                recording ``status='failed'`` in the run record.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )
        logger.info("Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug)

        try:
            rows = self._execute(run=run, **kwargs)
            run.status = "success"
            run.rows_processed = rows
            run.finished_at = utcnow()
            logger.info(
                "Stage [%s] completed | rows=%d | run_slug=%s",
                self.stage_name, rows, run.run_slug,
            )

        except Exception as exc:
            run.status = "failed"
            run.error_message = str(exc)
            run.finished_at = utcnow()
            logger.error(
                "Stage [%s] FAILED: %s | run_slug=%s",
                self.stage_name, exc, run.run_slug,
            )
            self._persist_run(run)
            raise

        finally:
            self._close_owned_provider()

        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs: Any) -> int:
        """Stage-specific implementation.

        Args:
            run:      The in-progress ``RunMetadata`` record (mutable).
            **kwargs: Stage-specific parameters.

        Returns:
            Count of picks / rows processed.
        """
        ...

    def _get_provider(self) -> Any:
        if self.provider is None:
            from stock_picks.ingestion.yahoo_client import YahooChartClient

            self._owned_provider = YahooChartClient.from_config(self.config.provider)
            self.provider = self._owned_provider
        return self.provider

    def _close_owned_provider(self) -> None:
        if self._owned_provider is not None:
            self._owned_provider.close()
            self._owned_provider = None
            self.provider = None

    def _ledger(self):
        from stock_picks.picks.ledger import PickLedger

        return PickLedger(
            self.config.data.ledger_dir,
            legacy_archive_dirs=self.config.data.legacy_archive_dirs,
        )

    def _persist_run(self, run: RunMetadata) -> None:
        """Write or update the run record.

        Persistence errors are logged rather than raised so they never mask
        the stage's own outcome.
        """
        try:
            from stock_picks.db.connection import audit_connection
            from stock_picks.db.repositories.run_repo import RunMetadataRepository

            with audit_connection(self.config.database, self.db_path) as conn:
                repo = RunMetadataRepository(conn)
                if run.run_id is None:
                    run.run_id = repo.insert_run(run)
                else:
                    repo.update_run(run)
        except Exception as exc:
            logger.error(
                "Failed to persist RunMetadata for run_slug=%s: %s",
                run.run_slug, exc,
            )
