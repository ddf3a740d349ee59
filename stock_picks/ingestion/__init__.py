"""
stock_picks.ingestion — market data acquisition.

Modules:
  provider       — ``MarketDataProvider`` protocol.
  yahoo_client   — Yahoo chart endpoint client (httpx).
  history_store  — Parquet cache of daily bars (pyarrow).
"""
