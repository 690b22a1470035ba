"""
Backward pagination over size-capped candle endpoints.

Vendors cap the number of candles per call. The pager walks backwards from
the newest bound, stitching pages into one ascending series and keeping
the newest ``limit`` bars when it overshoots.
"""

from typing import Awaitable, Callable, List, Optional

from ...core.logging import get_logger
from ...schemas.kline import Candle
from .candles import finalize_candles

logger = get_logger(__name__)

# fetch_page(page_size, newer_bound) -> candles oldest-first with t <= newer_bound
FetchPage = Callable[[int, int], Awaitable[List[Candle]]]


async def paginate(
    fetch_page: FetchPage,
    limit: int,
    page_cap: int,
    end: int,
    start: Optional[int] = None,
) -> List[Candle]:
    """
    Collect up to ``limit`` candles ending at ``end``.

    Stops when ``limit`` bars are collected, the oldest bar reaches
    ``start``, or a page comes back shorter than requested (history
    exhausted). Overlapping bars between pages are dropped.

    Args:
        fetch_page: Page reader; ``newer_bound`` is an inclusive unix-seconds bound
        limit: Number of candles wanted
        page_cap: Largest page the vendor serves
        end: Newest bound (unix seconds, inclusive)
        start: Oldest bound (unix seconds, inclusive), if any

    Returns:
        Candles oldest-first, at most ``limit`` of them
    """
    if limit <= 0:
        return []
    if page_cap <= 0:
        raise ValueError("page_cap must be positive")

    def in_window(candle: Candle, bound: int) -> bool:
        return candle.t <= bound and (start is None or candle.t >= start)

    if limit <= page_cap:
        page = await fetch_page(limit, end)
        return finalize_candles(c for c in page if in_window(c, end))[-limit:]

    collected: List[Candle] = []
    cursor = end
    pages = 0

    while len(collected) < limit:
        size = min(limit - len(collected), page_cap)
        raw_page = await fetch_page(size, cursor)
        pages += 1

        oldest_seen = collected[0].t if collected else None
        page = [
            c
            for c in finalize_candles(raw_page)
            if in_window(c, cursor) and (oldest_seen is None or c.t < oldest_seen)
        ]
        if not page:
            break

        collected = page + collected

        oldest = page[0].t
        if start is not None and oldest <= start:
            break
        if len(raw_page) < size:
            break
        cursor = oldest - 1

    logger.debug(f"Paginated {len(collected)} candles over {pages} pages (limit={limit}, cap={page_cap})")
    return collected[-limit:]
