"""
Property-based tests for interval mapping.

Every canonical interval maps to exactly one vendor timeframe, never a
finer one.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from market_feed.schemas.kline import KlineInterval
from market_feed.services.market_data.intervals import (
    BINANCE_TIMEFRAMES,
    MORALIS_TIMEFRAMES,
    OKX_TIMEFRAMES,
    VendorTimeframes,
    build_interval_table,
    candle_cache_ttl,
    map_interval,
    resolve_window,
)

VENDORS = [BINANCE_TIMEFRAMES, MORALIS_TIMEFRAMES, OKX_TIMEFRAMES]


@pytest.mark.unit
@given(interval=st.sampled_from(list(KlineInterval)), vendor=st.sampled_from(VENDORS))
def test_mapping_is_total_and_never_finer(interval, vendor):
    """Property: the mapped timeframe exists and is at least as wide."""
    timeframe = map_interval(interval, vendor)
    assert timeframe in vendor.durations
    assert vendor.seconds_of(timeframe) >= interval.seconds


@pytest.mark.unit
@given(interval=st.sampled_from(list(KlineInterval)), vendor=st.sampled_from(VENDORS))
def test_mapping_is_deterministic_and_tightest(interval, vendor):
    """Property: no supported timeframe fits between the request and the mapping."""
    timeframe = map_interval(interval, vendor)
    assert map_interval(interval.value, vendor) == timeframe
    mapped_seconds = vendor.seconds_of(timeframe)
    assert not any(interval.seconds <= s < mapped_seconds for s in vendor.durations.values())


@pytest.mark.unit
def test_binance_is_identity():
    for interval in KlineInterval:
        assert map_interval(interval, BINANCE_TIMEFRAMES) == interval.value


@pytest.mark.unit
@pytest.mark.parametrize(
    "interval,moralis,okx",
    [
        ("1m", "1min", "1m"),
        ("3m", "5min", "5m"),
        ("15m", "30min", "30m"),
        ("1h", "1h", "1H"),
        ("2h", "4h", "4H"),
        ("6h", "1d", "1D"),
        ("3d", "1w", "1W"),
        ("1M", "1M", "1M"),
    ],
)
def test_vendor_tables(interval, moralis, okx):
    assert map_interval(interval, MORALIS_TIMEFRAMES) == moralis
    assert map_interval(interval, OKX_TIMEFRAMES) == okx


@pytest.mark.unit
def test_unknown_interval_raises():
    with pytest.raises(ValueError):
        map_interval("2m", OKX_TIMEFRAMES)


@pytest.mark.unit
def test_vendor_without_coarse_timeframe_is_rejected():
    with pytest.raises(ValueError, match="No vendor timeframe covers"):
        build_interval_table({"1m": 60, "1h": 3600})
    with pytest.raises(ValueError):
        VendorTimeframes(name="short", durations={"1d": 86400})


@pytest.mark.unit
def test_candle_cache_ttl_grows_with_interval():
    assert candle_cache_ttl(KlineInterval.M1) == 30
    assert candle_cache_ttl("1h") == 300
    assert candle_cache_ttl(KlineInterval.D1) == 3600


@pytest.mark.unit
class TestResolveWindow:
    """Tests for default request windows."""

    def test_defaults_to_limit_buckets_before_now(self):
        assert resolve_window(3600, 24, None, None, now=100_000.7) == (100_000 - 86400, 100_000)

    def test_explicit_bounds_kept(self):
        assert resolve_window(60, 10, 500, 900, now=5_000) == (500, 900)

    def test_start_derived_from_end(self):
        assert resolve_window(60, 10, None, 900, now=5_000) == (300, 900)

    def test_start_clamped_at_epoch(self):
        assert resolve_window(3600, 1000, None, 100, now=0) == (0, 100)
