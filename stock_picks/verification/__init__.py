"""
stock_picks.verification — mark archived picks WIN / LOSS / PENDING.
"""
