"""
Binance public K-line (candlestick) source.

Major tokens with a Binance symbol mapping are served from the spot klines
endpoint. Requests go through ``ResilientFetcher`` so a flaky or blocked
Binance host falls back to the next one.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Hashable, List, Optional, Union

import httpx

from ....core.logging import get_logger
from ....core.price_feeds import get_price_feed, is_supported_chain
from ....schemas.kline import Candle, KlineInterval
from ..cache import TTLCache
from ..candles import finalize_candles, try_build_candle
from ..exceptions import UpstreamRequestError
from ..intervals import BINANCE_TIMEFRAMES, map_interval, resolve_window
from ..resilient import ResilientFetcher
from .base import MarketDataSource

logger = get_logger(__name__)

BINANCE_FALLBACK_ENDPOINTS = [
    "https://api1.binance.com",
    "https://api2.binance.com",
    "https://api3.binance.com",
    "https://api.binance.com",
]

KLINES_PATH = "/api/v3/klines"


def _parse_kline(row: Any) -> Optional[Candle]:
    # [openTime ms, open, high, low, close, baseVolume, closeTime, ...]
    if not isinstance(row, list) or len(row) < 6:
        return None
    try:
        open_time = int(row[0]) // 1000
    except (TypeError, ValueError):
        return None
    return try_build_candle("binance", open_time, *row[1:6])


def binance_endpoints(primary: Optional[str] = None) -> List[str]:
    """Endpoint order: the configured primary first, then the built-in hosts."""
    return ([primary] if primary else []) + BINANCE_FALLBACK_ENDPOINTS


class BinanceSource(MarketDataSource):
    """Centralized-exchange candles for tokens with a Binance symbol."""

    name = "binance"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: Optional[str] = None,
        max_retries: int = 3,
        base_delay: float = 0.5,
        timeout: float = 8.0,
        candle_cache: Optional[TTLCache] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(candle_cache=candle_cache, clock=clock)
        self.fetcher = ResilientFetcher(
            client,
            binance_endpoints(api_base),
            max_retries=max_retries,
            base_delay=base_delay,
            timeout=timeout,
            sleep=sleep,
            name=self.name,
        )

    def supports_chain(self, chain_id: int) -> bool:
        return is_supported_chain(chain_id)

    async def fetch_klines(
        self,
        symbol: str,
        interval: Union[KlineInterval, str],
        limit: int = 100,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[Candle]:
        """
        Fetch klines for a Binance symbol.

        Unlike ``fetch_ohlcv`` this raises on failure.

        Args:
            symbol: Binance symbol, e.g. "ETHUSDT"
            interval: Canonical interval
            limit: Number of candles (Binance caps at 1000)
            start: Start time, unix seconds
            end: End time, unix seconds

        Returns:
            Candles oldest-first

        Raises:
            UpstreamRequestError: On a rejected request or unexpected payload
            UpstreamUnavailableError: When every endpoint stayed unreachable
        """
        timeframe = map_interval(interval, BINANCE_TIMEFRAMES)
        limit = min(limit, 1000)
        params = {
            "symbol": symbol,
            "interval": timeframe,
            "limit": str(limit),
        }
        if start is not None:
            width = BINANCE_TIMEFRAMES.seconds_of(timeframe)
            window_start, window_end = resolve_window(width, limit, start, end, self._now())
            # startTime makes Binance return the oldest bars; wider windows send endTime only
            if (window_end - window_start) // width + 1 <= limit:
                params["startTime"] = str(window_start * 1000)
            params["endTime"] = str(window_end * 1000)
        elif end is not None:
            params["endTime"] = str(end * 1000)

        raw = await self.fetcher.get_json(KLINES_PATH, params)
        if not isinstance(raw, list):
            raise UpstreamRequestError(f"[binance] unexpected klines payload: {type(raw).__name__}")

        candles = finalize_candles(_parse_kline(row) for row in raw)
        if start is not None:
            candles = [c for c in candles if c.t >= start]
        return candles[-limit:]

    def _cache_key(self, chain_id, token, interval, limit, start, end, pair, quote) -> Hashable:
        feed = get_price_feed(chain_id, token)
        symbol = feed.binance_symbol if feed else None
        return (self.name, symbol, interval.value, limit, start, end)

    async def _load_ohlcv(
        self,
        chain_id: int,
        token: str,
        interval: KlineInterval,
        limit: int,
        start: Optional[int],
        end: Optional[int],
        pair: Optional[str],
        quote: Optional[str],
    ) -> List[Candle]:
        feed = get_price_feed(chain_id, token)
        if feed is None or feed.binance_symbol is None:
            logger.debug(f"[binance] no symbol mapping for {token} on chain {chain_id}")
            return []
        return await self.fetch_klines(feed.binance_symbol, interval, limit, start, end)
