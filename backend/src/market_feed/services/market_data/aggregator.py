"""
Swap-level aggregation into OHLCV candles.

Used when an upstream offers only hour/day pre-aggregates or raw trades and
the caller wants a finer interval. Trades arrive time-ordered, so a single
pass over a bucket map is enough.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List

from ...core.logging import get_logger
from ...schemas.kline import Candle
from .candles import finalize_candles, format_price_bar, try_build_candle
from .pricing import format_decimal, invert_price, price_from_sqrt_x96

logger = get_logger(__name__)


@dataclass(frozen=True)
class RawSwap:
    """One pool trade as reported by an indexer."""

    timestamp: int
    amount0: str
    amount1: str
    sqrt_price_x96: str

    @classmethod
    def from_subgraph(cls, raw: dict) -> "RawSwap":
        return cls(
            timestamp=int(raw["timestamp"]),
            amount0=str(raw["amount0"]),
            amount1=str(raw["amount1"]),
            sqrt_price_x96=str(raw["sqrtPriceX96"]),
        )


class _Bucket:
    __slots__ = ("open", "high", "low", "close", "volume")

    def __init__(self, price: float, volume: Decimal):
        self.open = self.high = self.low = self.close = price
        self.volume = volume

    def add(self, price: float, volume: Decimal) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.volume += volume


def aggregate_swaps(
    swaps: Iterable[RawSwap],
    is_token0: bool,
    interval_seconds: int,
    max_candles: int,
) -> List[Candle]:
    """
    Bucket trades into candles of ``interval_seconds``.

    Each trade's price comes from its sqrtPriceX96 and is inverted when the
    token of interest is the pool's second constituent. Volume is the
    absolute base-leg amount (``amount0`` for token0, else ``amount1``).
    Trades with an unusable timestamp, amount or price are skipped.

    Args:
        swaps: Trades in ascending time order
        is_token0: Whether the token of interest is token0 of the pool
        interval_seconds: Bucket width
        max_candles: Keep only this many most recent buckets

    Returns:
        Candles oldest-first
    """
    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be positive")

    buckets: Dict[int, _Bucket] = {}
    skipped = 0

    for swap in swaps:
        price = price_from_sqrt_x96(swap.sqrt_price_x96)
        if not is_token0:
            price = invert_price(price)
        try:
            volume = abs(Decimal(swap.amount0 if is_token0 else swap.amount1))
            bucket_start = (int(swap.timestamp) // interval_seconds) * interval_seconds
        except (InvalidOperation, TypeError, ValueError):
            skipped += 1
            continue
        if price <= 0 or not volume.is_finite():
            skipped += 1
            continue

        bucket = buckets.get(bucket_start)
        if bucket is None:
            buckets[bucket_start] = _Bucket(price, volume)
        else:
            bucket.add(price, volume)

    if skipped:
        logger.debug(f"Skipped {skipped} unusable swaps during aggregation")

    recent = sorted(buckets.items())[-max_candles:] if max_candles > 0 else []
    return finalize_candles(
        try_build_candle(
            "swaps",
            start,
            *format_price_bar(bucket.open, bucket.high, bucket.low, bucket.close),
            format_decimal(bucket.volume),
        )
        for start, bucket in recent
    )
