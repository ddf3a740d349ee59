"""
Strategy scorers and market-regime detection.

Modules
-------
regime   — benchmark SMA200 regime signal and ``RegimeContext``
scorers  — RAR, VAM, LSP and SCS strategy classes
"""
