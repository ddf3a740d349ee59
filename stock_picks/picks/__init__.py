"""
stock_picks.picks — universe, generation engine and the append-only ledger.
"""
