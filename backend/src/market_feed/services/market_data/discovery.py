"""
Pool / pair discovery.

Two strategies:
- ``PriceApiPairDiscovery`` asks a token-price API, whose reply embeds the
  best pair, its exchange, USD price and liquidity.
- ``IndexerPoolDiscovery`` queries liquidity-pool indexers for pools that
  pair the token with a reference quote asset and keeps the one with the
  most value locked.

Both cache by ``(chain, token, quote)``. A miss is cached too, with a
shorter TTL, so a token without a venue is not looked up on every request.
"""

from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from ...core.config import SubgraphEndpoint
from ...core.logging import get_logger
from ...core.price_feeds import DEFAULT_QUOTES
from ...schemas.kline import PairInfo, PoolInfo, PoolMatch
from .cache import TTLCache
from .exceptions import MarketDataException
from .graphql import GraphQLClient
from .resilient import ResilientFetcher

logger = get_logger(__name__)

POOL_FIELDS = """
    id
    token0 { id symbol decimals }
    token1 { id symbol decimals }
    totalValueLockedUSD
"""

POOLS_BY_TOKEN_QUERY = (
    """
query PoolsByToken($where: Pool_filter!) {
  pools(first: 5, orderBy: totalValueLockedUSD, orderDirection: desc, where: $where) {"""
    + POOL_FIELDS
    + """  }
}
"""
)

POOL_BY_ID_QUERY = (
    """
query PoolById($id: ID!) {
  pool(id: $id) {"""
    + POOL_FIELDS
    + """  }
}
"""
)


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class _NegativeTTL:
    """TTL picker giving misses (``None``) the shorter lifetime."""

    def __init__(self, ttl: float, negative_ttl: float):
        self.ttl = ttl
        self.negative_ttl = negative_ttl

    def __call__(self, value: Any) -> float:
        return self.negative_ttl if value is None else self.ttl


class PriceApiPairDiscovery:
    """Find a token's most liquid pair through a token-price endpoint."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        chain_params: Mapping[int, str],
        cache: TTLCache,
        headers: Optional[Mapping[str, str]] = None,
        ttl: float = 30 * 60,
        negative_ttl: float = 5 * 60,
    ):
        """
        Initialize the discovery.

        Args:
            fetcher: Fetcher bound to the price API base URL
            chain_params: Chain ID -> the API's chain parameter
            cache: Cache for discovered pairs
            headers: Headers sent with every request (authentication)
            ttl: Lifetime of a found pair in seconds
            negative_ttl: Lifetime of a miss in seconds
        """
        self.fetcher = fetcher
        self.chain_params = dict(chain_params)
        self.cache = cache
        self.headers = dict(headers or {})
        self._ttl = _NegativeTTL(ttl, negative_ttl)

    async def find_pair(self, chain_id: int, token: str) -> Optional[PairInfo]:
        """
        Discover the best pair for ``token``.

        Returns:
            PairInfo, or None when the chain is unsupported or no pair exists
        """
        chain = self.chain_params.get(chain_id)
        if chain is None:
            return None
        key = ("pair", chain_id, token.lower(), None)
        return await self.cache.get_or_load(key, lambda: self._load(chain, token), self._ttl)

    async def _load(self, chain: str, token: str) -> Optional[PairInfo]:
        try:
            data = await self.fetcher.get_json(f"/erc20/{token}/price", {"chain": chain}, headers=self.headers)
        except MarketDataException as e:
            logger.warning(f"Pair discovery for {token} on {chain} failed: {e}")
            return None

        if not isinstance(data, dict) or not data.get("pairAddress"):
            logger.info(f"No trading pair found for {token} on {chain}")
            return None

        try:
            return PairInfo(
                pair_address=data["pairAddress"],
                exchange_name=data.get("exchangeName") or "",
                exchange_address=data.get("exchangeAddress") or "",
                usd_price=_to_float(data.get("usdPrice")),
                liquidity_usd=_to_float(data.get("pairTotalLiquidityUsd")),
            )
        except ValidationError as e:
            logger.warning(f"Malformed pair reply for {token} on {chain}: {e}")
            return None


class IndexerPoolDiscovery:
    """Find a token's deepest pool across the chain's indexers."""

    def __init__(
        self,
        graphql: GraphQLClient,
        endpoints: Mapping[int, List[SubgraphEndpoint]],
        cache: TTLCache,
        quotes: Optional[Mapping[int, List[str]]] = None,
        ttl: float = 30 * 60,
        negative_ttl: float = 5 * 60,
    ):
        """
        Initialize the discovery.

        Args:
            graphql: GraphQL transport
            endpoints: Chain ID -> indexers in priority order
            cache: Cache for discovered pools
            quotes: Chain ID -> reference quote assets (defaults to the registry)
            ttl: Lifetime of a found pool in seconds
            negative_ttl: Lifetime of a miss in seconds
        """
        self.graphql = graphql
        self.endpoints = dict(endpoints)
        self.cache = cache
        self.quotes = dict(DEFAULT_QUOTES if quotes is None else quotes)
        self._ttl = _NegativeTTL(ttl, negative_ttl)

    def has_endpoints(self, chain_id: int) -> bool:
        return bool(self.endpoints.get(chain_id))

    async def find_pool(self, chain_id: int, token: str, quote: Optional[str] = None) -> Optional[PoolMatch]:
        """
        Discover the deepest pool pairing ``token`` with ``quote``.

        Without a quote, every reference quote asset of the chain is
        considered. Indexers are tried in order; an indexer failure moves on
        to the next one.

        Returns:
            PoolMatch carrying the indexer that answered, or None
        """
        if not self.has_endpoints(chain_id):
            return None
        token = token.lower()
        quotes = [quote.lower()] if quote else [q.lower() for q in self.quotes.get(chain_id, [])]
        if not quotes:
            return None
        key = ("pool", chain_id, token, quote.lower() if quote else "any")
        return await self.cache.get_or_load(key, lambda: self._search(chain_id, token, quotes), self._ttl)

    async def lookup_pool(self, chain_id: int, pool_id: str, token: str) -> Optional[PoolMatch]:
        """
        Resolve a known pool address to learn which side ``token`` is on.

        Returns:
            PoolMatch, or None when no indexer knows the pool or the token is
            not one of its constituents
        """
        if not self.has_endpoints(chain_id):
            return None
        key = ("pool-id", chain_id, pool_id.lower(), token.lower())
        return await self.cache.get_or_load(
            key, lambda: self._lookup(chain_id, pool_id.lower(), token.lower()), self._ttl
        )

    async def _search(self, chain_id: int, token: str, quotes: List[str]) -> Optional[PoolMatch]:
        where: Dict[str, Any] = {
            "or": [
                clause
                for q in quotes
                for clause in ({"token0": token, "token1": q}, {"token0": q, "token1": token})
            ]
        }
        for endpoint in self.endpoints[chain_id]:
            try:
                data = await self.graphql.query(endpoint.url, POOLS_BY_TOKEN_QUERY, {"where": where})
                pools = [PoolInfo.model_validate(raw) for raw in data.get("pools") or []]
            except (MarketDataException, httpx.HTTPError, ValidationError) as e:
                logger.warning(f"Pool discovery on {endpoint.dex} failed - trying next endpoint: {e}")
                continue

            if pools:
                best = max(pools, key=lambda pool: _to_float(pool.total_value_locked_usd))
                logger.info(f"Found pool {best.id} for {token} on {endpoint.dex}")
                return PoolMatch(pool=best, endpoint=endpoint, is_token0=best.token0.id.lower() == token)

        logger.info(f"No pool found for {token} on chain {chain_id}")
        return None

    async def _lookup(self, chain_id: int, pool_id: str, token: str) -> Optional[PoolMatch]:
        for endpoint in self.endpoints[chain_id]:
            try:
                data = await self.graphql.query(endpoint.url, POOL_BY_ID_QUERY, {"id": pool_id})
                raw = data.get("pool")
                pool = PoolInfo.model_validate(raw) if raw else None
            except (MarketDataException, httpx.HTTPError, ValidationError) as e:
                logger.warning(f"Pool lookup on {endpoint.dex} failed - trying next endpoint: {e}")
                continue

            if pool is None:
                continue
            if token not in (pool.token0.id.lower(), pool.token1.id.lower()):
                logger.warning(f"Token {token} is not a constituent of pool {pool_id}")
                return None
            return PoolMatch(pool=pool, endpoint=endpoint, is_token0=pool.token0.id.lower() == token)

        return None
