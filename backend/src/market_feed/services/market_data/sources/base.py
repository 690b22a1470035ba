import time
from abc import ABC, abstractmethod
from typing import Callable, Hashable, List, Optional, Union

import httpx

from ....core.logging import get_logger
from ....schemas.kline import Candle, KlineInterval
from ..cache import TTLCache
from ..exceptions import MarketDataException
from ..intervals import candle_cache_ttl

logger = get_logger(__name__)


class MarketDataSource(ABC):
    """
    Abstract base class for OHLCV sources.

    ``fetch_ohlcv`` never raises for upstream trouble, missing data or an
    unsupported chain: it logs and returns an empty list, so callers can
    try the next source. Only configuration errors propagate.
    """

    name: str = "source"

    def __init__(self, candle_cache: Optional[TTLCache] = None, clock: Callable[[], float] = time.time):
        """
        Initialize the source.

        Args:
            candle_cache: Cache for candle results (a private one is created if omitted)
            clock: Wall-clock time source in unix seconds, used for default windows
        """
        self.candle_cache = candle_cache if candle_cache is not None else TTLCache(f"{self.name}-candles")
        self._now = clock

    @abstractmethod
    def supports_chain(self, chain_id: int) -> bool:
        """Whether this source can serve the chain at all."""
        pass

    @abstractmethod
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
        """
        Fetch candles from the upstream.

        May raise ``MarketDataException`` or ``httpx.HTTPError``; the caller
        turns those into an empty result.
        """
        pass

    def _cache_key(
        self,
        chain_id: int,
        token: str,
        interval: KlineInterval,
        limit: int,
        start: Optional[int],
        end: Optional[int],
        pair: Optional[str],
        quote: Optional[str],
    ) -> Hashable:
        return (
            self.name,
            chain_id,
            token.lower(),
            pair.lower() if pair else None,
            quote.lower() if quote else None,
            interval.value,
            limit,
            start,
            end,
        )

    async def fetch_ohlcv(
        self,
        chain_id: int,
        token: str,
        interval: Union[KlineInterval, str],
        limit: int = 100,
        start: Optional[int] = None,
        end: Optional[int] = None,
        pair: Optional[str] = None,
        quote: Optional[str] = None,
    ) -> List[Candle]:
        """
        Fetch candles for a token (or a known pair) oldest-first.

        Args:
            chain_id: Chain ID
            token: Base token contract address
            interval: Canonical interval
            limit: Maximum number of candles
            start: Oldest bucket, unix seconds (inclusive)
            end: Newest bucket, unix seconds (inclusive)
            pair: Pool/pair address, skips discovery where the source supports it
            quote: Quote token, narrows discovery where the source supports it

        Returns:
            List of candles, empty when the source has nothing to offer
        """
        interval = KlineInterval(interval)
        if not self.supports_chain(chain_id):
            logger.debug(f"[{self.name}] chain {chain_id} not supported")
            return []

        key = self._cache_key(chain_id, token, interval, limit, start, end, pair, quote)
        try:
            candles = await self.candle_cache.get_or_load(
                key,
                lambda: self._load_ohlcv(chain_id, token, interval, limit, start, end, pair, quote),
                candle_cache_ttl(interval),
            )
        except (MarketDataException, httpx.HTTPError) as e:
            logger.warning(f"[{self.name}] OHLCV fetch for {token} on chain {chain_id} failed: {e}")
            return []

        logger.debug(f"[{self.name}] {len(candles)} candles for {token} {interval.value} on chain {chain_id}")
        return list(candles)
