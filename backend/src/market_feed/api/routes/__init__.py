"""
API routes for the market feed service.

Exports all route modules for easy importing.
"""

from . import kline

__all__ = [
    "kline",
]
