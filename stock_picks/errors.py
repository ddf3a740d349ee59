"""
Exception taxonomy.

Only the process-fatal conditions are exceptions.  Everything recoverable is
expressed as a value instead:

  - a symbol the provider could not return is simply absent from the batch;
  - a scorer without enough history returns ``None``;
  - an immature pick verifies as ``PENDING``;
  - a malformed archive entry is skipped and counted by the ledger reader.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for conditions that abort a pipeline run."""


class LedgerWriteError(PipelineError):
    """The ledger directory cannot be created or written to."""


class LedgerConflictError(LedgerWriteError):
    """A run file with the same name already exists (entries are never overwritten)."""


class EmptyUniverseError(PipelineError):
    """The provider returned zero snapshots across the entire universe."""
