"""
Services module for business logic.

Includes:
- KlineService: K-line aggregation across CEX and on-chain sources
"""

from .market_data import KlineService, close_kline_service, get_kline_service

__all__ = [
    "KlineService",
    "get_kline_service",
    "close_kline_service",
]
