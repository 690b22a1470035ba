"""
Interval mapping between canonical resolutions and vendor timeframes.

Each vendor supports a subset of timeframes. A canonical interval the
vendor lacks is served at the nearest coarser timeframe, never a finer
one. The response still reports the requested interval; callers accept
the vendor's bucket width in that case.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from ...schemas.kline import KlineInterval


def build_interval_table(durations: Dict[str, int]) -> Dict[KlineInterval, str]:
    """
    Map every canonical interval to the finest vendor timeframe at least as wide.

    Args:
        durations: Vendor timeframe name -> width in seconds

    Returns:
        Total mapping over KlineInterval

    Raises:
        ValueError: If the vendor has nothing as coarse as some canonical interval
    """
    table: Dict[KlineInterval, str] = {}
    for interval in KlineInterval:
        candidates = [
            (seconds, timeframe)
            for timeframe, seconds in durations.items()
            if seconds >= interval.seconds
        ]
        if not candidates:
            raise ValueError(f"No vendor timeframe covers {interval.value}")
        table[interval] = min(candidates)[1]
    return table


@dataclass(frozen=True)
class VendorTimeframes:
    """Supported timeframes of one vendor and the derived canonical table."""

    name: str
    durations: Dict[str, int]
    table: Dict[KlineInterval, str] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "table", build_interval_table(self.durations))

    def seconds_of(self, timeframe: str) -> int:
        return self.durations[timeframe]


BINANCE_TIMEFRAMES = VendorTimeframes(
    name="binance",
    durations={interval.value: interval.seconds for interval in KlineInterval},
)

MORALIS_TIMEFRAMES = VendorTimeframes(
    name="moralis",
    durations={
        "1min": 60,
        "5min": 300,
        "30min": 1800,
        "1h": 3600,
        "4h": 14400,
        "1d": 86400,
        "1w": 604800,
        "1M": 2592000,
    },
)

OKX_TIMEFRAMES = VendorTimeframes(
    name="okx",
    durations={
        "1m": 60,
        "5m": 300,
        "30m": 1800,
        "1H": 3600,
        "4H": 14400,
        "1D": 86400,
        "1W": 604800,
        "1M": 2592000,
    },
)


def map_interval(interval: Union[KlineInterval, str], vendor: VendorTimeframes) -> str:
    """
    Translate a canonical interval into the vendor's timeframe.

    Args:
        interval: Canonical interval (enum or its string value)
        vendor: Vendor timeframe set

    Returns:
        str: Vendor timeframe name

    Raises:
        ValueError: If ``interval`` is not a canonical interval
    """
    return vendor.table[KlineInterval(interval)]


# Candle cache TTL (seconds) per interval: fast intervals stay fresh for
# polling clients, slow ones spare the upstream.
CANDLE_CACHE_TTL: Dict[KlineInterval, int] = {
    KlineInterval.M1: 30,
    KlineInterval.M3: 60,
    KlineInterval.M5: 60,
    KlineInterval.M15: 2 * 60,
    KlineInterval.M30: 5 * 60,
    KlineInterval.H1: 5 * 60,
    KlineInterval.H2: 10 * 60,
    KlineInterval.H4: 10 * 60,
    KlineInterval.H6: 15 * 60,
    KlineInterval.H8: 15 * 60,
    KlineInterval.H12: 30 * 60,
    KlineInterval.D1: 60 * 60,
    KlineInterval.D3: 60 * 60,
    KlineInterval.W1: 60 * 60,
    KlineInterval.MN1: 60 * 60,
}


def candle_cache_ttl(interval: Union[KlineInterval, str]) -> int:
    return CANDLE_CACHE_TTL.get(KlineInterval(interval), 60)


def resolve_window(
    width_seconds: int,
    limit: int,
    start: Optional[int],
    end: Optional[int],
    now: float,
) -> Tuple[int, int]:
    """
    Fill in an open request window.

    ``end`` defaults to ``now`` and ``start`` to ``limit`` buckets before ``end``.

    Returns:
        (start, end) in unix seconds, both inclusive
    """
    effective_end = int(now) if end is None else end
    effective_start = effective_end - width_seconds * limit if start is None else start
    return max(effective_start, 0), effective_end
