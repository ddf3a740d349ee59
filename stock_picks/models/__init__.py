"""Pydantic models for market data, picks, portfolios and run metadata."""
