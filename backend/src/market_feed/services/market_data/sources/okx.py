"""
OKX DEX market candles.

Free endpoint, no API key. Serves at most 200 candles per call, newest
first, and pages backwards with ``after`` (strictly older than, in ms).
"""

import time
from typing import Any, Callable, List, Optional

import httpx

from ....core.logging import get_logger
from ....schemas.kline import Candle, KlineInterval
from ..cache import TTLCache
from ..candles import finalize_candles, try_build_candle
from ..exceptions import UpstreamRequestError
from ..intervals import OKX_TIMEFRAMES, map_interval, resolve_window
from ..pager import paginate
from ..resilient import ResilientFetcher
from .base import MarketDataSource

logger = get_logger(__name__)

# OKX uses EVM chain IDs as its chainIndex.
OKX_CHAIN_INDEX = {
    1: "1",
    56: "56",
    8453: "8453",
    97: "97",
}

OKX_PAGE_CAP = 200

CANDLES_PATH = "/candles"


def _parse_row(row: Any) -> Optional[Candle]:
    # [ts ms, open, high, low, close, volume, ...]
    if not isinstance(row, list) or len(row) < 6:
        return None
    try:
        open_time = int(row[0]) // 1000
    except (TypeError, ValueError):
        return None
    return try_build_candle("okx", open_time, *row[1:6])


class OKXSource(MarketDataSource):
    """DEX candles for any token OKX indexes, no discovery needed."""

    name = "okx"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://web3.okx.com/api/v6/dex/market",
        timeout: float = 10.0,
        candle_cache: Optional[TTLCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(candle_cache=candle_cache, clock=clock)
        self.fetcher = ResilientFetcher(client, [base_url], max_retries=1, timeout=timeout, name=self.name)

    def supports_chain(self, chain_id: int) -> bool:
        return chain_id in OKX_CHAIN_INDEX

    async def _fetch_page(
        self,
        chain_index: str,
        token: str,
        bar: str,
        size: int,
        newer_bound: int,
        start: int,
    ) -> List[Candle]:
        params = {
            "chainIndex": chain_index,
            "tokenContractAddress": token,
            "bar": bar,
            "limit": str(size),
            # both bounds are exclusive on the OKX side
            "after": str((newer_bound + 1) * 1000),
            "before": str(max(start * 1000 - 1, 0)),
        }
        payload = await self.fetcher.get_json(CANDLES_PATH, params)
        if not isinstance(payload, dict):
            raise UpstreamRequestError("[okx] unexpected candles payload")
        if str(payload.get("code")) != "0":
            raise UpstreamRequestError(f"[okx] API error {payload.get('code')}: {payload.get('msg')}")
        return finalize_candles(_parse_row(row) for row in payload.get("data") or [])

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
        chain_index = OKX_CHAIN_INDEX[chain_id]
        bar = map_interval(interval, OKX_TIMEFRAMES)
        window_start, window_end = resolve_window(OKX_TIMEFRAMES.seconds_of(bar), limit, start, end, self._now())

        async def fetch_page(size: int, newer_bound: int) -> List[Candle]:
            return await self._fetch_page(chain_index, token, bar, size, newer_bound, window_start)

        return await paginate(fetch_page, limit, OKX_PAGE_CAP, end=window_end, start=window_start)
