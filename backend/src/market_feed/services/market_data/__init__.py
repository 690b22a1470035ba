"""
Market Data Service Module.

Provides K-line fetching from Binance, Moralis, OKX and pool indexers,
with endpoint fallback, discovery caching and a uniform candle format.
"""

from .cache import MISSING, TTLCache
from .service import KlineService, close_kline_service, get_kline_service
from .sources import BinanceSource, MarketDataSource, MoralisSource, OKXSource, SubgraphSource

__all__ = [
    "KlineService",
    "get_kline_service",
    "close_kline_service",
    "TTLCache",
    "MISSING",
    "MarketDataSource",
    "BinanceSource",
    "MoralisSource",
    "OKXSource",
    "SubgraphSource",
]
