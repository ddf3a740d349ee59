"""SQLite run-audit persistence."""
