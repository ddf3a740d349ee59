"""
stock_picks.pipeline — auditable pipeline stages.

Stages: generate, portfolio, verify, backtest.  ``DailyRunner`` chains them.
"""
