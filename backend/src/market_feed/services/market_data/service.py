"""K-line aggregation service orchestrating all data sources."""

from typing import Dict, List, Optional

import httpx

from ...core.config import BaseConfig, config
from ...core.logging import get_logger
from ...core.price_feeds import default_quote, get_price_feed, has_binance_mapping, is_stablecoin
from ...schemas.kline import Candle, KlineQuery, KlineResponse, TokenInfo
from .cache import TTLCache
from .sources import BinanceSource, MarketDataSource, MoralisSource, OKXSource, SubgraphSource

logger = get_logger(__name__)


class KlineService:
    """
    Service answering K-line requests from the best available source.

    Routing:
    - Base token with a Binance mapping and a stablecoin (or omitted) quote
      -> Binance.
    - Otherwise, or when Binance has nothing -> the on-chain sources in
      configured preference order; the first non-empty answer wins.

    The response shape is identical whichever source answered.

    Owns:
    - the shared HTTP client
    - every cache instance (candles, pairs, pools, token metadata)
    - the source adapters
    """

    def __init__(self, settings: Optional[BaseConfig] = None, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the service.

        Args:
            settings: Configuration (defaults to the process configuration)
            client: HTTP client to use; one is created and owned if omitted
        """
        self.settings = settings or config
        self._owns_client = client is None
        # trust_env picks up HTTP(S)_PROXY / NO_PROXY
        self.client = client or httpx.AsyncClient(trust_env=True, headers={"Accept": "application/json"})

        self.caches: Dict[str, TTLCache] = {}

        self.binance = BinanceSource(
            self.client,
            api_base=self.settings.BINANCE_API_BASE,
            max_retries=self.settings.BINANCE_MAX_RETRIES,
            base_delay=self.settings.BINANCE_RETRY_BASE_DELAY,
            timeout=self.settings.BINANCE_REQUEST_TIMEOUT,
            candle_cache=self._cache("binance-candles"),
        )
        self.moralis = MoralisSource(
            self.client,
            api_key=self.settings.MORALIS_API_KEY,
            base_url=self.settings.MORALIS_BASE_URL,
            timeout=self.settings.MORALIS_REQUEST_TIMEOUT,
            candle_cache=self._cache("moralis-candles"),
            pair_cache=self._cache("moralis-pairs"),
            token_cache=self._cache("token-info"),
            pair_ttl=self.settings.PAIR_CACHE_TTL,
            negative_ttl=self.settings.PAIR_NEGATIVE_CACHE_TTL,
            token_ttl=self.settings.TOKEN_INFO_CACHE_TTL,
        )
        self.okx = OKXSource(
            self.client,
            base_url=self.settings.OKX_BASE_URL,
            timeout=self.settings.OKX_REQUEST_TIMEOUT,
            candle_cache=self._cache("okx-candles"),
        )
        self.subgraph = SubgraphSource(
            self.client,
            endpoints=self.settings.SUBGRAPH_ENDPOINTS,
            timeout=self.settings.SUBGRAPH_REQUEST_TIMEOUT,
            candle_cache=self._cache("subgraph-candles"),
            pool_cache=self._cache("subgraph-pools"),
            pool_ttl=self.settings.PAIR_CACHE_TTL,
            negative_ttl=self.settings.PAIR_NEGATIVE_CACHE_TTL,
        )

        available: Dict[str, MarketDataSource] = {
            source.name: source for source in (self.moralis, self.okx, self.subgraph)
        }
        self.onchain_sources: List[MarketDataSource] = []
        for name in self.settings.onchain_sources_list:
            source = available.get(name)
            if source is None:
                logger.warning(f"Unknown on-chain source '{name}' in ONCHAIN_SOURCES - ignored")
                continue
            if source not in self.onchain_sources:
                self.onchain_sources.append(source)

        logger.info(
            f"KlineService initialized (on-chain order: {[s.name for s in self.onchain_sources]})"
        )

    def _cache(self, name: str) -> TTLCache:
        cache = TTLCache(
            name,
            max_entries=self.settings.CACHE_MAX_ENTRIES,
            coalesce=self.settings.CACHE_COALESCE,
        )
        self.caches[name] = cache
        return cache

    async def get_klines(self, query: KlineQuery) -> KlineResponse:
        """
        Fetch K-line candles for a base/quote pair.

        Args:
            query: Validated request

        Returns:
            KlineResponse with candles oldest-first (possibly empty)
        """
        quote = query.quote or default_quote(query.chain_id) or ""

        base_symbol = await self._resolve_symbol(query.chain_id, query.base)
        quote_symbol = await self._resolve_symbol(query.chain_id, quote) if quote else ""

        candles = await self._route(query)

        return KlineResponse(
            base=query.base,
            quote=quote,
            chain_id=query.chain_id,
            base_symbol=base_symbol,
            quote_symbol=quote_symbol,
            interval=query.interval,
            candles=candles,
        )

    async def get_token_info(self, chain_id: int, address: str) -> Optional[TokenInfo]:
        """Get token metadata; None when the token is unknown."""
        return await self.moralis.fetch_token_info(chain_id, address)

    def use_cex(self, query: KlineQuery) -> bool:
        """Whether the request is answered from the centralized exchange."""
        if query.pair or not has_binance_mapping(query.chain_id, query.base):
            return False
        return query.quote is None or is_stablecoin(query.chain_id, query.quote)

    async def _route(self, query: KlineQuery) -> List[Candle]:
        if self.use_cex(query):
            candles = await self.binance.fetch_ohlcv(
                query.chain_id, query.base, query.interval, query.limit, query.start, query.end
            )
            if candles:
                return candles
            logger.warning(f"Binance returned no candles for {query.base} - falling back to on-chain sources")

        for source in self.onchain_sources:
            candles = await source.fetch_ohlcv(
                query.chain_id,
                query.base,
                query.interval,
                query.limit,
                query.start,
                query.end,
                pair=query.pair,
                quote=query.quote,
            )
            if candles:
                logger.debug(f"Served {query.base} {query.interval.value} from {source.name}")
                return candles

        logger.info(f"No candles available for {query.base} on chain {query.chain_id}")
        return []

    async def _resolve_symbol(self, chain_id: int, address: str) -> str:
        feed = get_price_feed(chain_id, address)
        if feed is not None:
            return feed.symbol
        info = await self.get_token_info(chain_id, address)
        if info is not None and info.symbol:
            return info.symbol
        return address[:10]

    async def aclose(self) -> None:
        """Release the HTTP client if this service created it."""
        if self._owns_client:
            await self.client.aclose()


# Global service instance
_kline_service: Optional[KlineService] = None


def get_kline_service() -> KlineService:
    """
    Get or create the global K-line service instance.

    Returns:
        KlineService: Global service instance
    """
    global _kline_service
    if _kline_service is None:
        _kline_service = KlineService()
    return _kline_service


async def close_kline_service() -> None:
    """Close and forget the global service instance."""
    global _kline_service
    if _kline_service is not None:
        await _kline_service.aclose()
        _kline_service = None
