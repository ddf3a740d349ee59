"""
SQLite access for the run-audit database.

The only thing stored in SQLite is ``run_metadata``: one row per stage run
(generate, portfolio, verify, backtest).  Picks themselves live in the JSON
ledger, so this database is small and written once at the start and once at
the end of every stage.

Two entry points:

  - ``get_connection(path)`` opens a raw connection (used by tests and by
    ``init-db --db-path``).
  - ``audit_connection(db_config)`` opens the configured audit database with
    the schema already applied.  Stages and the ``show-runs`` command use it.

Both commit on clean exit and roll back on exception.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Generator, Optional

if TYPE_CHECKING:
    from stock_picks.config import DatabaseConfig

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def _open(db_path: str, busy_timeout_ms: int) -> sqlite3.Connection:
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a connection to ``db_path`` (created with its parent dirs if absent).

    Args:
        db_path:         Database file, or ``":memory:"``.
        wal_mode:        Use WAL journaling (ignored for in-memory databases),
                         so ``show-runs`` can read while a stage is writing.
        busy_timeout_ms: How long a writer waits on a locked database.
    """
    conn = _open(db_path, busy_timeout_ms)
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        if wal_mode and db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def audit_connection(
    db_config: "DatabaseConfig",
    db_path: Optional[str] = None,
) -> Generator[sqlite3.Connection, None, None]:
    """Open the run-audit database described by ``db_config``, schema applied.

    Args:
        db_config: ``[database]`` section of ``AppConfig``.
        db_path:   Overrides ``db_config.db_path`` (``--db-path`` and tests).
    """
    from stock_picks.db.schema import apply_schema

    path = db_path or db_config.db_path
    with get_connection(
        path,
        wal_mode=db_config.wal_mode,
        busy_timeout_ms=db_config.busy_timeout_ms,
    ) as conn:
        apply_schema(conn)
        logger.debug("Run-audit database ready at %s", path)
        yield conn
