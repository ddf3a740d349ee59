"""Pure technical indicators over daily price series."""
