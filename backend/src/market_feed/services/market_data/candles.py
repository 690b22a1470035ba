"""Candle normalization helpers shared by every source adapter."""

from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from ...core.logging import get_logger
from ...schemas.kline import Candle
from .exceptions import InvalidCandleDataError
from .pricing import format_decimal, format_price, invert_price_str

logger = get_logger(__name__)


def decimal_str(value: Any) -> str:
    """
    Normalize an upstream number to a decimal string.

    Strings are kept verbatim so no precision is lost; numbers are rendered
    without exponent.

    Raises:
        InvalidCandleDataError: If the value is missing or not a finite number
    """
    if value is None or isinstance(value, bool):
        raise InvalidCandleDataError(f"missing or non-numeric value {value!r}")
    try:
        if isinstance(value, str):
            format_decimal(value)
            return value.strip()
        return format_decimal(value)
    except ValueError as e:
        raise InvalidCandleDataError(str(e), value) from e


def build_candle(t: Any, o: Any, h: Any, l: Any, c: Any, v: Any) -> Candle:  # noqa: E741
    """
    Build a validated Candle from raw upstream fields.

    Raises:
        InvalidCandleDataError: If any field is malformed or the bar is inconsistent
    """
    try:
        timestamp = int(t)
    except (TypeError, ValueError) as e:
        raise InvalidCandleDataError(f"bad timestamp {t!r}") from e
    try:
        return Candle(
            t=timestamp,
            o=decimal_str(o),
            h=decimal_str(h),
            l=decimal_str(l),
            c=decimal_str(c),
            v=decimal_str(v),
        )
    except ValidationError as e:
        raise InvalidCandleDataError(str(e.errors()[0].get("msg", e))) from e


def try_build_candle(source: str, t: Any, o: Any, h: Any, l: Any, c: Any, v: Any) -> Optional[Candle]:  # noqa: E741
    """Build a candle, or log and return ``None`` so the bar is dropped."""
    try:
        return build_candle(t, o, h, l, c, v)
    except InvalidCandleDataError as e:
        logger.debug(f"[{source}] dropping bar at t={t!r}: {e}")
        return None


def invert_candle(candle: Candle) -> Optional[Candle]:
    """
    Re-express a bar in the reciprocal price direction.

    Inversion reverses ordering, so the new high is ``1/low`` and the new
    low is ``1/high``. Volume is untouched. Returns ``None`` when the
    inverted bar is unusable (e.g. a zero price).
    """
    return try_build_candle(
        "invert",
        candle.t,
        invert_price_str(candle.o),
        invert_price_str(candle.l),
        invert_price_str(candle.h),
        invert_price_str(candle.c),
        candle.v,
    )


def finalize_candles(candles: Iterable[Optional[Candle]]) -> List[Candle]:
    """
    Sort oldest-first and drop duplicates and dropped (``None``) bars.

    When two bars share a timestamp the later one in input order wins.
    """
    by_time = {}
    for candle in candles:
        if candle is not None:
            by_time[candle.t] = candle
    return [by_time[t] for t in sorted(by_time)]


def rollup_candles(candles: Sequence[Candle], interval_seconds: int) -> List[Candle]:
    """
    Merge finer oldest-first bars into buckets of ``interval_seconds``.

    Open comes from the first bar of a bucket, close from the last, high and
    low are the extremes and volume is summed exactly.
    """
    buckets: dict = {}
    for candle in candles:
        start = (candle.t // interval_seconds) * interval_seconds
        o, h, l, c, v = (Decimal(x) for x in (candle.o, candle.h, candle.l, candle.c, candle.v))
        bar = buckets.get(start)
        if bar is None:
            buckets[start] = [o, h, l, c, v]
        else:
            bar[1] = max(bar[1], h)
            bar[2] = min(bar[2], l)
            bar[3] = c
            bar[4] += v
    return finalize_candles(
        try_build_candle("rollup", t, *(format_decimal(x) for x in bar))
        for t, bar in sorted(buckets.items())
    )


def format_price_bar(o: float, h: float, l: float, c: float) -> tuple:  # noqa: E741
    return format_price(o), format_price(h), format_price(l), format_price(c)
