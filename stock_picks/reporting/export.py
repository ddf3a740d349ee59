"""
Artifact writers.

Every JSON artifact goes through ``write_json_atomic()``: the payload is
serialised fully in memory, written to a temporary file in the destination
directory, then moved into place with ``os.replace``.  Readers therefore
never observe a partially written file.

CSV exports are flat (no nested dicts) so they load directly in a
spreadsheet without pre-processing.
"""

from __future__ import annotations

import csv
import json
import os
import tempfile
from pathlib import Path
from typing import Any


def dumps_artifact(data: Any) -> str:
    """Canonical JSON text used for every artifact (stable key order)."""
    return json.dumps(data, indent=2, sort_keys=True, default=str) + "\n"


def write_json_atomic(data: Any, path: Path) -> Path:
    """Write ``data`` as pretty-printed JSON to ``path`` atomically.

    Args:
        data: JSON-serialisable dict or list.
        path: Destination file (parent directories are created).

    Returns:
        ``path`` as written.

    Raises:
        OSError: The directory cannot be created or written.
    """
    write_text_atomic(dumps_artifact(data), path)
    return path


def write_text_atomic(text: str, path: Path) -> Path:
    """Write ``text`` to ``path`` via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def export_to_csv(
    records: list[dict],
    path: Path,
    fieldnames: list[str] | None = None,
) -> Path:
    """Write ``records`` to a UTF-8 CSV file, atomically.

    Args:
        records:    List of flat row dicts.
        path:       Destination file path.
        fieldnames: Column order.  If None, uses the keys of the first record.

    Returns:
        ``path`` as written.
    """
    if not records and not fieldnames:
        return write_text_atomic("", path)

    cols = fieldnames or list(records[0].keys())
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=cols, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(records)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path
