"""
stock_picks.backtest — retroactive analysis of archived picks.

Modules:
  windows   — per-pick forward window returns and the hit rule.
  ranking   — per-algorithm hit-rate ranking.
  reporter  — report assembly plus JSON / CSV output.
"""
