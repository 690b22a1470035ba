"""
Tests for swap-level aggregation into candles.
"""

from collections import defaultdict
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from market_feed.services.market_data.aggregator import RawSwap, aggregate_swaps
from market_feed.services.market_data.pricing import Q96

BASE_TS = 1_700_000_100  # aligned to a 5-minute boundary


def _swap(ts, amount0="1", amount1="-1", sqrt=Q96):
    return RawSwap(timestamp=ts, amount0=amount0, amount1=amount1, sqrt_price_x96=str(sqrt))


@pytest.mark.unit
def test_two_hours_of_trades_at_five_minutes():
    """1000 trades over 2 hours produce 24 five-minute buckets with exact volumes."""
    swaps = []
    expected_volume = defaultdict(Decimal)
    for i in range(1000):
        ts = BASE_TS + int(i * 7.2)
        amount0 = f"{'-' if i % 2 else ''}{i % 7 + 1}.25"
        swaps.append(_swap(ts, amount0=amount0))
        expected_volume[(ts // 300) * 300] += abs(Decimal(amount0))

    candles = aggregate_swaps(swaps, is_token0=True, interval_seconds=300, max_candles=100)

    assert len(candles) == 24
    assert [c.t for c in candles] == sorted(expected_volume)
    for candle in candles:
        assert Decimal(candle.v) == expected_volume[candle.t]


@pytest.mark.unit
def test_open_high_low_close_follow_trade_order():
    prices = [Q96, 2 * Q96, Q96 // 2, 3 * Q96 // 2]  # 1, 4, 0.25, 2.25
    swaps = [_swap(BASE_TS + i, sqrt=p) for i, p in enumerate(prices)]

    (candle,) = aggregate_swaps(swaps, is_token0=True, interval_seconds=60, max_candles=10)

    assert Decimal(candle.o) == 1
    assert Decimal(candle.h) == 4
    assert Decimal(candle.l) == Decimal("0.25")
    assert Decimal(candle.c) == Decimal("2.25")


@pytest.mark.unit
def test_token1_prices_are_inverted():
    """A token1 view of the same trades reads 1/price and uses the amount1 leg."""
    swaps = [
        _swap(BASE_TS, amount0="4", amount1="-10", sqrt=2 * Q96),
        _swap(BASE_TS + 1, amount0="-2", amount1="5", sqrt=Q96),
    ]

    (as_token0,) = aggregate_swaps(swaps, is_token0=True, interval_seconds=60, max_candles=1)
    (as_token1,) = aggregate_swaps(swaps, is_token0=False, interval_seconds=60, max_candles=1)

    assert Decimal(as_token1.o) == 1 / Decimal(as_token0.o)
    assert Decimal(as_token1.h) == 1 / Decimal(as_token0.l)
    assert Decimal(as_token1.l) == 1 / Decimal(as_token0.h)
    assert Decimal(as_token1.c) == 1 / Decimal(as_token0.c)
    assert as_token0.v == "6"
    assert as_token1.v == "15"


@pytest.mark.unit
def test_keeps_most_recent_buckets():
    swaps = [_swap(BASE_TS + minute * 60) for minute in range(10)]
    candles = aggregate_swaps(swaps, is_token0=True, interval_seconds=60, max_candles=3)
    assert [c.t for c in candles] == [BASE_TS + 7 * 60, BASE_TS + 8 * 60, BASE_TS + 9 * 60]


@pytest.mark.unit
def test_unusable_trades_are_skipped():
    swaps = [
        _swap(BASE_TS, sqrt=0),
        _swap(BASE_TS + 1, amount0="not-a-number"),
        _swap(BASE_TS + 2, amount0="3"),
    ]
    (candle,) = aggregate_swaps(swaps, is_token0=True, interval_seconds=60, max_candles=5)
    assert candle.v == "3"


@pytest.mark.unit
def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        aggregate_swaps([], is_token0=True, interval_seconds=0, max_candles=5)


@pytest.mark.unit
@settings(max_examples=50)
@given(
    trades=st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=86_400),
            st.integers(min_value=Q96 // 1000, max_value=Q96 * 1000),
            st.decimals(min_value=-1000, max_value=1000, allow_nan=False, places=6),
        ),
        max_size=200,
    ),
    is_token0=st.booleans(),
    interval=st.sampled_from([60, 300, 900, 1800]),
)
def test_aggregated_candles_are_well_formed(trades, is_token0, interval):
    """Property: candles are ascending, unique, bucket-aligned and respect the envelope."""
    swaps = [_swap(ts, amount0=str(a), amount1=str(-a), sqrt=s) for ts, s, a in sorted(trades)]
    candles = aggregate_swaps(swaps, is_token0=is_token0, interval_seconds=interval, max_candles=50)

    times = [c.t for c in candles]
    assert times == sorted(set(times))
    assert len(candles) <= 50
    for c in candles:
        assert c.t % interval == 0
        o, h, l, cl = (Decimal(x) for x in (c.o, c.h, c.l, c.c))  # noqa: E741
        assert h >= max(o, cl) and l <= min(o, cl)
