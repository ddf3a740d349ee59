"""
stock_picks.reporting — artifact writing, reading and terminal formatting.

Modules:
  export     — atomic JSON writes and flat CSV export.
  reader     — report loading and freshness checks.
  formatters — ASCII tables for the Typer CLI.
"""
