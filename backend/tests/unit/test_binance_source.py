"""
Tests for the Binance K-line source.
"""

from decimal import Decimal

import httpx
import pytest

from helpers import mock_client
from market_feed.services.market_data.cache import TTLCache
from market_feed.services.market_data.exceptions import UpstreamUnavailableError
from market_feed.services.market_data.sources.binance import (
    BINANCE_FALLBACK_ENDPOINTS,
    BinanceSource,
    binance_endpoints,
)

WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
BNB_NATIVE = "0x0000000000000000000000000000000000000000"
UNKNOWN = "0x1111111111111111111111111111111111111111"


def _kline(open_ms, o="600.1", h="605.0", l="598.2", c="603.3", v="1234.5"):  # noqa: E741
    return [open_ms, o, h, l, c, v, open_ms + 3_599_999, "744000.1", 1500, "600", "360000", "0"]


async def _no_sleep(delay):
    return None


def _source(client, cache_clock, **kwargs):
    return BinanceSource(client, candle_cache=TTLCache("binance-candles", clock=cache_clock), sleep=_no_sleep, **kwargs)


@pytest.mark.unit
def test_endpoint_order_puts_configured_primary_first():
    assert binance_endpoints("https://proxy.example.com") == ["https://proxy.example.com"] + BINANCE_FALLBACK_ENDPOINTS
    assert binance_endpoints(None) == BINANCE_FALLBACK_ENDPOINTS


@pytest.mark.unit
class TestFetchKlines:
    @pytest.mark.asyncio
    async def test_parses_rows_and_sends_params(self, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[_kline(1_700_003_600_000), _kline(1_700_000_000_000, o="599")])

        async with mock_client(handler) as client:
            candles = await _source(client, clock).fetch_klines("BNBUSDT", "1h", limit=2, start=1_700_000_000, end=1_700_003_600)

        assert [c.t for c in candles] == [1_700_000_000, 1_700_003_600]
        assert candles[0].o == "599"
        assert Decimal(candles[1].h) == Decimal("605.0")
        assert candles[1].v == "1234.5"

        params = requests[0].url.params
        assert requests[0].url.host == "api1.binance.com"
        assert requests[0].url.path == "/api/v3/klines"
        assert params["symbol"] == "BNBUSDT"
        assert params["interval"] == "1h"
        assert params["limit"] == "2"
        assert params["startTime"] == "1700000000000"
        assert params["endTime"] == "1700003600000"

    @pytest.mark.asyncio
    async def test_start_only_window_keeps_newest_bars(self, clock):
        requests = []
        now = 1000 * 3600

        def handler(request):
            # Binance semantics: startTime returns oldest bars first, otherwise the newest before endTime
            requests.append(request)
            params = request.url.params
            limit = int(params["limit"])
            end_ms = int(params["endTime"])
            opens = list(range(0, end_ms + 1, 3_600_000))
            if "startTime" in params:
                opens = [t for t in opens if t >= int(params["startTime"])][:limit]
            else:
                opens = opens[-limit:]
            return httpx.Response(200, json=[_kline(t) for t in opens])

        async with mock_client(handler) as client:
            source = _source(client, clock, clock=lambda: now)
            candles = await source.fetch_ohlcv(56, WBNB, "1h", limit=10, start=0)

        assert len(candles) == 10
        assert candles[-1].t == now
        assert candles[0].t == now - 9 * 3600
        assert "startTime" not in requests[0].url.params
        assert requests[0].url.params["endTime"] == str(now * 1000)

    @pytest.mark.asyncio
    async def test_limit_is_capped_and_window_optional(self, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[])

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_klines("ETHUSDT", "1d", limit=5000) == []

        params = requests[0].url.params
        assert params["limit"] == "1000"
        assert "startTime" not in params
        assert "endTime" not in params

    @pytest.mark.asyncio
    async def test_malformed_rows_are_dropped(self, clock):
        def handler(request):
            return httpx.Response(
                200,
                json=[
                    _kline(1_700_000_000_000),
                    ["not-a-time", "1", "1", "1", "1", "1"],
                    [1_700_007_200_000, "1"],
                    _kline(1_700_010_800_000, h="1.0", l="2.0"),
                ],
            )

        async with mock_client(handler) as client:
            candles = await _source(client, clock).fetch_klines("BNBUSDT", "1h")

        assert [c.t for c in candles] == [1_700_000_000]

    @pytest.mark.asyncio
    async def test_raises_when_every_endpoint_resets(self, clock):
        calls = []

        def handler(request):
            calls.append(request.url.host)
            raise httpx.ConnectError("connection reset by peer", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(UpstreamUnavailableError, match="All 4 endpoints failed after 3 attempts"):
                await _source(client, clock).fetch_klines("BNBUSDT", "1h")

        assert len(calls) == 12


@pytest.mark.unit
class TestFetchOhlcv:
    @pytest.mark.asyncio
    async def test_wrapped_and_native_share_symbol_and_cache(self, clock):
        calls = []

        def handler(request):
            calls.append(request.url.params["symbol"])
            return httpx.Response(200, json=[_kline(1_700_000_000_000)])

        async with mock_client(handler) as client:
            source = _source(client, clock)
            first = await source.fetch_ohlcv(56, WBNB, "1h", limit=1)
            second = await source.fetch_ohlcv(56, BNB_NATIVE, "1h", limit=1)

        assert calls == ["BNBUSDT"]
        assert first == second
        assert first is not second

    @pytest.mark.asyncio
    async def test_cache_expires_with_interval_ttl(self, clock):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[_kline(1_700_000_000_000)])

        async with mock_client(handler) as client:
            source = _source(client, clock)
            await source.fetch_ohlcv(56, WBNB, "1m", limit=1)
            clock.advance(31)
            await source.fetch_ohlcv(56, WBNB, "1m", limit=1)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_unmapped_token_returns_empty_without_request(self, clock):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_ohlcv(56, UNKNOWN, "1h") == []

    @pytest.mark.asyncio
    async def test_unsupported_chain_returns_empty(self, clock):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_ohlcv(137, WBNB, "1h") == []

    @pytest.mark.asyncio
    async def test_upstream_failure_returns_empty_and_is_not_cached(self, clock):
        state = {"fail": True}

        def handler(request):
            if state["fail"]:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, json=[_kline(1_700_000_000_000)])

        async with mock_client(handler) as client:
            source = _source(client, clock)
            assert await source.fetch_ohlcv(56, WBNB, "1h") == []
            state["fail"] = False
            assert len(await source.fetch_ohlcv(56, WBNB, "1h")) == 1

    @pytest.mark.asyncio
    async def test_rejected_symbol_returns_empty(self, clock):
        def handler(request):
            return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_ohlcv(56, WBNB, "1h") == []
