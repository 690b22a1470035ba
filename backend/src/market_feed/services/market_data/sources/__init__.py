"""OHLCV source adapters."""

from .base import MarketDataSource
from .binance import BinanceSource
from .moralis import MoralisSource
from .okx import OKXSource
from .subgraph import SubgraphSource

__all__ = [
    "MarketDataSource",
    "BinanceSource",
    "MoralisSource",
    "OKXSource",
    "SubgraphSource",
]
