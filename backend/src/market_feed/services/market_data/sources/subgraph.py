"""
Liquidity-pool indexer (The Graph subgraph) source.

Works against Uniswap V3 style schemas and offers two resolution tiers:
  1. Hour / day snapshots from ``poolHourDatas`` / ``poolDayDatas``. Wider
     intervals are rolled up from these.
  2. Swap-level aggregation for sub-hour intervals: raw ``swaps`` are
     bucketed into the requested width. Heavier, and limited to the newest
     1000 trades of the window.

Snapshot prices are token0 priced in token1; they are inverted when the
requested token is the pool's token1.
"""

import math
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from ....core.config import SubgraphEndpoint
from ....core.logging import get_logger
from ....schemas.kline import Candle, KlineInterval, PoolMatch
from ..aggregator import RawSwap, aggregate_swaps
from ..cache import TTLCache
from ..candles import finalize_candles, invert_candle, rollup_candles, try_build_candle
from ..discovery import IndexerPoolDiscovery
from ..graphql import GraphQLClient
from ..intervals import resolve_window
from ..pager import paginate
from .base import MarketDataSource

logger = get_logger(__name__)

HOUR = 3600
DAY = 86400

# Maximum ``first`` a subgraph accepts.
SUBGRAPH_PAGE_CAP = 1000

SNAPSHOT_FIELDS = """
    open
    high
    low
    close
    volumeUSD
"""

POOL_HOUR_DATAS_QUERY = (
    """
query PoolHourDatas($where: PoolHourData_filter!, $first: Int!) {
  poolHourDatas(first: $first, orderBy: periodStartUnix, orderDirection: desc, where: $where) {
    periodStartUnix"""
    + SNAPSHOT_FIELDS
    + """  }
}
"""
)

POOL_DAY_DATAS_QUERY = (
    """
query PoolDayDatas($where: PoolDayData_filter!, $first: Int!) {
  poolDayDatas(first: $first, orderBy: date, orderDirection: desc, where: $where) {
    date"""
    + SNAPSHOT_FIELDS
    + """  }
}
"""
)

SWAPS_QUERY = """
query Swaps($where: Swap_filter!, $first: Int!) {
  swaps(first: $first, orderBy: timestamp, orderDirection: desc, where: $where) {
    timestamp
    amount0
    amount1
    sqrtPriceX96
  }
}
"""


class SnapshotTier:
    def __init__(self, width: int, entity: str, time_field: str, query: str):
        self.width = width
        self.entity = entity
        self.time_field = time_field
        self.query = query


HOUR_TIER = SnapshotTier(HOUR, "poolHourDatas", "periodStartUnix", POOL_HOUR_DATAS_QUERY)
DAY_TIER = SnapshotTier(DAY, "poolDayDatas", "date", POOL_DAY_DATAS_QUERY)


def _snapshot_candle(row: Dict[str, Any], time_field: str, is_token0: bool) -> Optional[Candle]:
    candle = try_build_candle(
        "subgraph",
        row.get(time_field),
        row.get("open"),
        row.get("high"),
        row.get("low"),
        row.get("close"),
        row.get("volumeUSD"),
    )
    if candle is None or is_token0:
        return candle
    return invert_candle(candle)


class SubgraphSource(MarketDataSource):
    """On-chain candles read straight from pool indexers."""

    name = "subgraph"

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoints: Mapping[int, List[SubgraphEndpoint]],
        timeout: float = 15.0,
        candle_cache: Optional[TTLCache] = None,
        pool_cache: Optional[TTLCache] = None,
        pool_ttl: float = 30 * 60,
        negative_ttl: float = 5 * 60,
        quotes: Optional[Mapping[int, List[str]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(candle_cache=candle_cache, clock=clock)
        self.graphql = GraphQLClient(client, timeout=timeout)
        self.discovery = IndexerPoolDiscovery(
            self.graphql,
            endpoints,
            pool_cache if pool_cache is not None else TTLCache("subgraph-pools"),
            quotes=quotes,
            ttl=pool_ttl,
            negative_ttl=negative_ttl,
        )

    def supports_chain(self, chain_id: int) -> bool:
        return self.discovery.has_endpoints(chain_id)

    async def fetch_snapshot_candles(
        self,
        match: PoolMatch,
        tier: SnapshotTier,
        limit: int,
        start: int,
        end: int,
    ) -> List[Candle]:
        """Read hour or day snapshots of a pool, newest ``limit`` within [start, end]."""
        pool_id = match.pool.id.lower()

        async def fetch_page(size: int, newer_bound: int) -> List[Candle]:
            where = {
                "pool": pool_id,
                f"{tier.time_field}_gte": start,
                f"{tier.time_field}_lte": newer_bound,
            }
            data = await self.graphql.query(match.endpoint.url, tier.query, {"where": where, "first": size})
            rows = data.get(tier.entity) or []
            return finalize_candles(
                _snapshot_candle(row, tier.time_field, match.is_token0) for row in rows if isinstance(row, dict)
            )

        return await paginate(fetch_page, limit, SUBGRAPH_PAGE_CAP, end=end, start=start)

    async def fetch_swap_candles(
        self,
        match: PoolMatch,
        interval_seconds: int,
        limit: int,
        start: int,
        end: int,
    ) -> List[Candle]:
        """Aggregate the newest swaps of the window into ``interval_seconds`` buckets."""
        where = {
            "pool": match.pool.id.lower(),
            "timestamp_gte": str(start),
            "timestamp_lte": str(end),
        }
        data = await self.graphql.query(
            match.endpoint.url, SWAPS_QUERY, {"where": where, "first": SUBGRAPH_PAGE_CAP}
        )

        swaps = []
        for raw in reversed(data.get("swaps") or []):
            try:
                swaps.append(RawSwap.from_subgraph(raw))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"[subgraph] skipping malformed swap {raw!r}")
        if not swaps:
            return []

        return aggregate_swaps(swaps, match.is_token0, interval_seconds, limit)

    async def _resolve_pool(
        self,
        chain_id: int,
        token: str,
        pair: Optional[str],
        quote: Optional[str],
    ) -> Optional[PoolMatch]:
        if pair:
            return await self.discovery.lookup_pool(chain_id, pair, token)
        return await self.discovery.find_pool(chain_id, token, quote)

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
        match = await self._resolve_pool(chain_id, token, pair, quote)
        if match is None:
            return []

        width = interval.seconds
        window_start, window_end = resolve_window(width, limit, start, end, self._now())

        if width < HOUR:
            return await self.fetch_swap_candles(match, width, limit, window_start, window_end)

        tier = HOUR_TIER if width < DAY else DAY_TIER
        per_bucket = math.ceil(width / tier.width)
        snapshots = await self.fetch_snapshot_candles(match, tier, limit * per_bucket, window_start, window_end)
        if per_bucket == 1:
            return snapshots[-limit:]

        logger.debug(f"[subgraph] rolling {len(snapshots)} {tier.entity} rows up to {interval.value}")
        return rollup_candles(snapshots, width)[-limit:]
