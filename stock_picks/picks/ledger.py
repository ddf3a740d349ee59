"""
Append-only pick ledger.

Layout under ``ledger_dir``::

    history/YYYY/MM/DD/<HHMMSS>_<run8>.json   one file per generation run
    current.json                              latest run (replaced each run)
    ledger-index.json                         one summary row per run

Run files are never overwritten: a name collision raises
``LedgerConflictError``.  ``current.json`` and the index are derived views
and are rewritten atomically after every append.

Reading folds over every archived record:

  - ``history/**/*.json`` in sorted path order, then
  - each legacy archive directory (flat ``*.json``) in sorted order, then
  - ``current.json``.

Two file shapes are accepted: entries that carry their own ``pickedAt``,
and older files where a single ``lastUpdated`` / ``pickedAt`` (or a
date-like file stem) applies to every entry.  Entries with no symbol, no
resolvable timestamp or invalid fields are skipped and counted.  Records
are de-duplicated on ``(symbol, algorithm, timeframe, pickedAt)``; the
first occurrence wins, so archived files take precedence over
``current.json``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from stock_picks.errors import LedgerConflictError, LedgerWriteError
from stock_picks.models.pick import LedgerEntry, Pick
from stock_picks.reporting.export import write_json_atomic
from stock_picks.reporting.reader import load_json_report
from stock_picks.strategies.regime import RegimeContext
from stock_picks.utils.time_utils import parse_timestamp, to_iso

logger = logging.getLogger(__name__)

HISTORY_DIRNAME = "history"
CURRENT_FILENAME = "current.json"
INDEX_FILENAME = "ledger-index.json"

LEGACY_DEFAULTS: dict[str, Any] = {
    "rating": "HOLD",
    "timeframe": "1m",
    "algorithm": "",
    "score": 0,
}

_VALID_RISKS = {"Low", "Medium", "High", "Very High"}


@dataclass
class LedgerReadResult:
    """Entries folded from the ledger plus what had to be skipped."""

    entries: list[LedgerEntry] = field(default_factory=list)
    skipped: int = 0
    duplicates: int = 0
    files_read: int = 0


def stocks_content_hash(stocks: Sequence[Mapping[str, Any]]) -> str:
    """SHA-256 over the canonical JSON of a run's ``stocks`` array."""
    canonical = json.dumps(list(stocks), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def regime_payload(regime: Optional[RegimeContext]) -> Optional[dict[str, Any]]:
    if regime is None:
        return None
    payload: dict[str, Any] = {"label": regime.label}
    if regime.signal is not None:
        payload.update(regime.signal.to_artifact())
    return payload


class PickLedger:
    """Filesystem ledger rooted at ``ledger_dir``.

    Args:
        ledger_dir:          Root of the ledger.
        legacy_archive_dirs: Extra flat directories of older run files that
                             are read but never written.
    """

    def __init__(
        self,
        ledger_dir: Path | str,
        legacy_archive_dirs: Iterable[Path | str] = (),
    ) -> None:
        self.ledger_dir = Path(ledger_dir)
        self.legacy_archive_dirs = [Path(d) for d in legacy_archive_dirs]

    @property
    def history_dir(self) -> Path:
        return self.ledger_dir / HISTORY_DIRNAME

    @property
    def current_path(self) -> Path:
        return self.ledger_dir / CURRENT_FILENAME

    @property
    def index_path(self) -> Path:
        return self.ledger_dir / INDEX_FILENAME

    # ── Writes ────────────────────────────────────────────────────────────────

    def run_path(self, generated_at: datetime, run_id: str) -> Path:
        return (
            self.history_dir
            / f"{generated_at:%Y}"
            / f"{generated_at:%m}"
            / f"{generated_at:%d}"
            / f"{generated_at:%H%M%S}_{run_id[:8]}.json"
        )

    def append_run(
        self,
        entries: Sequence[LedgerEntry],
        generated_at: datetime,
        run_id: Optional[str] = None,
        regime: Optional[RegimeContext] = None,
        runner_ups: Optional[Mapping[str, Pick]] = None,
    ) -> Path:
        """Archive one generation run and refresh the derived views.

        Args:
            entries:      Ledger entries of the run (already stamped).
            generated_at: Run timestamp; used for the file path and
                          ``lastUpdated``.
            run_id:       Unique run id; a fresh UUID4 hex when omitted.
            regime:       Regime context recorded with the run.
            runner_ups:   Best relaxed evaluation per algorithm.

        Returns:
            Path of the new run file.

        Raises:
            LedgerConflictError: A run file with the same name already exists.
            LedgerWriteError:    The ledger directory cannot be written.
        """
        run_id = run_id or uuid.uuid4().hex
        stocks = [entry.to_artifact() for entry in entries]
        payload = {
            "runId": run_id,
            "lastUpdated": to_iso(generated_at),
            "totalPicks": len(stocks),
            "regime": regime_payload(regime),
            "runnerUps": {
                algo: pick.to_artifact() for algo, pick in sorted((runner_ups or {}).items())
            },
            "contentHash": stocks_content_hash(stocks),
            "stocks": stocks,
        }

        path = self.run_path(generated_at, run_id)
        if path.exists():
            raise LedgerConflictError(f"Ledger run file already exists: {path}")

        try:
            write_json_atomic(payload, path)
            write_json_atomic(payload, self.current_path)
            self._append_index(payload, path)
        except OSError as exc:
            raise LedgerWriteError(f"Cannot write ledger at {self.ledger_dir}: {exc}") from exc

        logger.info("Archived %d picks to %s", len(stocks), path)
        return path

    def _append_index(self, payload: Mapping[str, Any], path: Path) -> None:
        index = self.load_index()
        index.append(
            {
                "date": payload["lastUpdated"][:10],
                "runId": payload["runId"],
                "path": path.relative_to(self.ledger_dir).as_posix(),
                "totalPicks": payload["totalPicks"],
                "contentHash": payload["contentHash"],
            }
        )
        write_json_atomic(index, self.index_path)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def load_index(self) -> list[dict[str, Any]]:
        data = load_json_report(self.index_path)
        return data if isinstance(data, list) else []

    def load_current(self) -> Optional[dict[str, Any]]:
        """The latest run payload, or ``None`` before the first run."""
        data = load_json_report(self.current_path)
        return data if isinstance(data, dict) else None

    def current_entries(self) -> list[LedgerEntry]:
        """Entries of the latest run only."""
        data = self.load_current()
        if data is None:
            return []
        entries, _ = parse_run_payload(data, self.current_path)
        return entries

    def archive_files(self) -> list[Path]:
        """Every archived run file, in read order."""
        files: list[Path] = []
        if self.history_dir.exists():
            files.extend(sorted(self.history_dir.rglob("*.json")))
        for legacy_dir in self.legacy_archive_dirs:
            if legacy_dir.exists():
                files.extend(sorted(legacy_dir.glob("*.json")))
        return files

    def read_entries(self, include_current: bool = True) -> LedgerReadResult:
        """Fold every archived record into a de-duplicated entry list."""
        result = LedgerReadResult()
        seen: set[tuple] = set()

        paths = self.archive_files()
        if include_current and self.current_path.exists():
            paths.append(self.current_path)

        for path in paths:
            data = load_json_report(path)
            if data is None:
                result.skipped += 1
                continue
            result.files_read += 1
            entries, skipped = parse_run_payload(data, path)
            result.skipped += skipped
            for entry in entries:
                key = entry.dedupe_key
                if key in seen:
                    result.duplicates += 1
                    continue
                seen.add(key)
                result.entries.append(entry)

        if result.skipped:
            logger.warning("Ledger read skipped %d malformed records/files", result.skipped)
        logger.info(
            "Ledger: %d entries from %d files (%d duplicates dropped)",
            len(result.entries), result.files_read, result.duplicates,
        )
        return result


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_run_payload(data: Any, path: Path) -> tuple[list[LedgerEntry], int]:
    """Parse one run file's payload into entries.

    Returns:
        ``(entries, skipped)``.
    """
    if isinstance(data, list):
        raw_entries, file_ts = data, None
    elif isinstance(data, dict):
        raw_entries = data.get("stocks") or []
        file_ts = data.get("lastUpdated") or data.get("pickedAt")
    else:
        return [], 1

    fallback = parse_timestamp(file_ts) or parse_timestamp(path.stem)

    entries: list[LedgerEntry] = []
    skipped = 0
    for raw in raw_entries:
        entry = _parse_entry(raw, fallback)
        if entry is None:
            skipped += 1
            logger.debug("Skipping malformed entry in %s: %r", path, raw)
            continue
        entries.append(entry)
    return entries, skipped


def _parse_entry(raw: Any, fallback: Optional[datetime]) -> Optional[LedgerEntry]:
    if not isinstance(raw, dict) or not raw.get("symbol"):
        return None

    picked_at = parse_timestamp(raw.get("pickedAt")) or fallback
    if picked_at is None:
        return None

    record = {k: v for k, v in LEGACY_DEFAULTS.items()}
    record.update({k: v for k, v in raw.items() if v is not None})
    record["pickedAt"] = picked_at
    if isinstance(record.get("rating"), str):
        record["rating"] = record["rating"].strip().upper()
    if record.get("risk") not in _VALID_RISKS:
        record.pop("risk", None)

    try:
        return LedgerEntry.model_validate(record)
    except ValidationError:
        return None
