"""
Market Feed

OHLCV (K-line) aggregation across a centralized exchange and on-chain
sources, served through one uniform candle format.
"""

__version__ = "1.0.0"
__description__ = "Multi-source OHLCV market data aggregation"
