"""Scientific stock-pick pipeline: generate, archive, verify and backtest daily picks."""

__version__ = "0.1.0"
