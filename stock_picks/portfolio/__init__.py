"""stock_picks.portfolio — equal-weight daily portfolio from the latest picks."""
