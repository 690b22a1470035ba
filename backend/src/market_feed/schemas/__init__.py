"""
Pydantic schemas for K-line requests, responses and upstream entities.
"""

from .kline import (
    INTERVAL_SECONDS,
    Candle,
    KlineInterval,
    KlineQuery,
    KlineResponse,
    PairInfo,
    PoolInfo,
    PoolMatch,
    PoolToken,
    TokenInfo,
)

__all__ = [
    "Candle",
    "INTERVAL_SECONDS",
    "KlineInterval",
    "KlineQuery",
    "KlineResponse",
    "PairInfo",
    "PoolInfo",
    "PoolMatch",
    "PoolToken",
    "TokenInfo",
]
