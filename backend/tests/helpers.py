"""
Shared test helpers.
"""

import httpx

from market_feed.schemas.kline import Candle


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def mock_client(handler) -> httpx.AsyncClient:
    """Create an HTTP client whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def make_candle(t: int, price: float = 100.0, volume: str = "1") -> Candle:
    """Create a flat-ish valid candle around ``price``."""
    return Candle(
        t=t,
        o=str(price),
        h=str(price + 1),
        l=str(price - 1),
        c=str(price),
        v=volume,
    )
