"""
Moralis on-chain data source.

Provides:
  1. Token metadata (name, symbol, decimals, logo)
  2. Token price and best DEX pair discovery
  3. OHLCV candles for a DEX pair

Needs an API key. Without one the source disables itself: it warns once
at construction and every call returns an empty result.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import httpx
from pydantic import ValidationError

from ....core.exceptions import ConfigurationError
from ....core.logging import get_logger
from ....core.price_feeds import get_price_feed
from ....schemas.kline import Candle, KlineInterval, PairInfo, TokenInfo
from ..cache import TTLCache
from ..candles import finalize_candles, try_build_candle
from ..discovery import PriceApiPairDiscovery
from ..exceptions import MarketDataException
from ..intervals import MORALIS_TIMEFRAMES, map_interval, resolve_window
from ..resilient import ResilientFetcher
from .base import MarketDataSource

logger = get_logger(__name__)

MORALIS_CHAINS = {
    1: "0x1",
    56: "0x38",
    8453: "0x2105",
    97: "0x61",
}

# The OHLCV endpoint serves at most this many bars per call.
MORALIS_MAX_LIMIT = 1000


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def _parse_timestamp(value: Any) -> Optional[int]:
    """Parse an ISO-8601 bar timestamp to unix seconds."""
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


class MoralisSource(MarketDataSource):
    """DEX candles, pair discovery and token metadata from Moralis."""

    name = "moralis"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_url: str = "https://deep-index.moralis.io/api/v2.2",
        timeout: float = 10.0,
        candle_cache: Optional[TTLCache] = None,
        pair_cache: Optional[TTLCache] = None,
        token_cache: Optional[TTLCache] = None,
        pair_ttl: float = 30 * 60,
        negative_ttl: float = 5 * 60,
        token_ttl: float = 24 * 60 * 60,
        require_api_key: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the Moralis source.

        Args:
            client: Shared HTTP client
            api_key: Moralis API key; the source is disabled without it
            base_url: API base URL
            timeout: Per-request timeout in seconds
            candle_cache: Cache for candle results
            pair_cache: Cache for discovered pairs (positive and negative)
            token_cache: Cache for token metadata
            pair_ttl: Lifetime of a discovered pair in seconds
            negative_ttl: Lifetime of a failed lookup in seconds
            token_ttl: Lifetime of token metadata in seconds
            require_api_key: Raise instead of degrading when the key is missing
            clock: Wall-clock time source

        Raises:
            ConfigurationError: If ``require_api_key`` is set and no key is given
        """
        super().__init__(candle_cache=candle_cache, clock=clock)
        self.api_key = api_key
        self.enabled = bool(api_key)
        if not self.enabled:
            if require_api_key:
                raise ConfigurationError("MORALIS_API_KEY is required but not set")
            logger.warning("MORALIS_API_KEY not set - Moralis data source disabled")

        self.headers = {"X-API-Key": api_key} if api_key else {}
        self.fetcher = ResilientFetcher(client, [base_url], max_retries=1, timeout=timeout, name=self.name)
        self.token_cache = token_cache if token_cache is not None else TTLCache("moralis-tokens")
        self.token_ttl = token_ttl
        self.negative_ttl = negative_ttl
        self.discovery = PriceApiPairDiscovery(
            self.fetcher,
            MORALIS_CHAINS,
            pair_cache if pair_cache is not None else TTLCache("moralis-pairs"),
            headers=self.headers,
            ttl=pair_ttl,
            negative_ttl=negative_ttl,
        )

    def supports_chain(self, chain_id: int) -> bool:
        return self.enabled and chain_id in MORALIS_CHAINS

    async def fetch_token_info(self, chain_id: int, address: str) -> Optional[TokenInfo]:
        """
        Get token metadata.

        The static registry is consulted first and needs no network call.

        Returns:
            TokenInfo, or None when the token is unknown
        """
        feed = get_price_feed(chain_id, address)
        if feed is not None:
            return TokenInfo(
                address=feed.address,
                chain_id=chain_id,
                symbol=feed.symbol,
                name=feed.symbol,
                decimals=feed.decimals,
            )

        if not self.supports_chain(chain_id):
            return None

        key = (chain_id, address.lower())
        return await self.token_cache.get_or_load(
            key,
            lambda: self._load_token_info(chain_id, address),
            lambda info: self.negative_ttl if info is None else self.token_ttl,
        )

    async def _load_token_info(self, chain_id: int, address: str) -> Optional[TokenInfo]:
        try:
            data = await self.fetcher.get_json(
                "/erc20/metadata",
                {"chain": MORALIS_CHAINS[chain_id], "addresses": address},
                headers=self.headers,
            )
        except MarketDataException as e:
            logger.warning(f"[moralis] token metadata for {address} failed: {e}")
            return None

        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            return None

        token = data[0]
        try:
            decimals = int(token.get("decimals") or 0)
        except (TypeError, ValueError):
            decimals = 0
        try:
            return TokenInfo(
                address=token.get("address") or address,
                chain_id=chain_id,
                symbol=token.get("symbol") or "",
                name=token.get("name") or "",
                decimals=decimals,
                logo=token.get("logo") or token.get("thumbnail") or None,
            )
        except ValidationError as e:
            logger.warning(f"[moralis] malformed token metadata for {address}: {e}")
            return None

    async def fetch_pair(self, chain_id: int, token: str) -> Optional[PairInfo]:
        """Discover the token's best DEX pair; None when there is none."""
        if not self.supports_chain(chain_id):
            return None
        return await self.discovery.find_pair(chain_id, token)

    async def fetch_pair_ohlcv(
        self,
        chain_id: int,
        pair_address: str,
        interval: KlineInterval,
        limit: int = 100,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[Candle]:
        """
        Fetch OHLCV candles for a DEX pair.

        Raises:
            MarketDataException: On upstream failure
        """
        timeframe = map_interval(interval, MORALIS_TIMEFRAMES)
        window_start, window_end = resolve_window(
            MORALIS_TIMEFRAMES.seconds_of(timeframe), limit, start, end, self._now()
        )
        params = {
            "chain": MORALIS_CHAINS[chain_id],
            "timeframe": timeframe,
            "limit": str(min(limit, MORALIS_MAX_LIMIT)),
            "fromDate": _iso(window_start),
            "toDate": _iso(window_end),
        }

        data = await self.fetcher.get_json(f"/pairs/{pair_address}/ohlcv", params, headers=self.headers)
        rows = data.get("result") if isinstance(data, dict) else None
        if not rows:
            return []

        # Moralis returns newest first
        candles = finalize_candles(
            try_build_candle(
                self.name,
                _parse_timestamp(row.get("timestamp")),
                row.get("open"),
                row.get("high"),
                row.get("low"),
                row.get("close"),
                row.get("volume"),
            )
            for row in rows
            if isinstance(row, dict)
        )
        return candles[-limit:]

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
        if pair is None:
            found = await self.discovery.find_pair(chain_id, token)
            if found is None:
                return []
            pair = found.pair_address
        return await self.fetch_pair_ohlcv(chain_id, pair, interval, limit, start, end)
