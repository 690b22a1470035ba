"""
Tests for the Moralis source: key handling, token metadata, pair discovery
and pair OHLCV.
"""

import httpx
import pytest

from helpers import mock_client
from market_feed.core.exceptions import ConfigurationError
from market_feed.schemas.kline import KlineInterval
from market_feed.services.market_data.cache import TTLCache
from market_feed.services.market_data.sources.moralis import MoralisSource, _iso, _parse_timestamp

TOKEN = "0x1111111111111111111111111111111111111111"
PAIR = "0x2222222222222222222222222222222222222222"
BSC_USDT = "0x55d398326f99059fF775485246999027B3197955"

NOW = 1_700_086_400


def _source(client, clock, api_key="test-key", **kwargs):
    return MoralisSource(
        client,
        api_key=api_key,
        base_url="https://moralis.test/api/v2.2",
        candle_cache=TTLCache("c", clock=clock),
        pair_cache=TTLCache("p", clock=clock),
        token_cache=TTLCache("t", clock=clock),
        clock=lambda: NOW,
        **kwargs,
    )


def _bar(ts, o="1.0", h="1.2", l="0.9", c="1.1", v="500"):  # noqa: E741
    return {"timestamp": ts, "open": o, "high": h, "low": l, "close": c, "volume": v, "trades": 3}


@pytest.mark.unit
def test_timestamp_helpers():
    assert _iso(0) == "1970-01-01T00:00:00.000Z"
    assert _parse_timestamp("2023-11-14T22:13:20.000Z") == 1_700_000_000
    assert _parse_timestamp("2023-11-14T22:13:20") == 1_700_000_000
    assert _parse_timestamp("yesterday") is None
    assert _parse_timestamp(None) is None


@pytest.mark.unit
class TestApiKey:
    @pytest.mark.asyncio
    async def test_missing_key_disables_source(self, clock):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            source = _source(client, clock, api_key=None)
            assert source.enabled is False
            assert source.supports_chain(56) is False
            assert await source.fetch_ohlcv(56, TOKEN, "1h") == []
            assert await source.fetch_pair(56, TOKEN) is None
            assert await source.fetch_token_info(56, TOKEN) is None

    @pytest.mark.asyncio
    async def test_required_key_raises(self, clock):
        async with mock_client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ConfigurationError):
                _source(client, clock, api_key="", require_api_key=True)


@pytest.mark.unit
class TestTokenInfo:
    @pytest.mark.asyncio
    async def test_registry_token_needs_no_network(self, clock):
        def handler(request):
            raise AssertionError("no request expected")

        async with mock_client(handler) as client:
            info = await _source(client, clock).fetch_token_info(56, BSC_USDT.lower())

        assert info.symbol == "USDT"
        assert info.decimals == 18
        assert info.chain_id == 56

    @pytest.mark.asyncio
    async def test_metadata_lookup_is_cached(self, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json=[{"address": TOKEN, "symbol": "TKN", "name": "Token", "decimals": "9", "logo": "https://logo"}],
            )

        async with mock_client(handler) as client:
            source = _source(client, clock)
            info = await source.fetch_token_info(56, TOKEN)
            again = await source.fetch_token_info(56, TOKEN.upper().replace("0X", "0x"))

        assert info.symbol == "TKN"
        assert info.name == "Token"
        assert info.decimals == 9
        assert info.logo == "https://logo"
        assert again == info
        assert len(requests) == 1
        assert requests[0].url.path == "/api/v2.2/erc20/metadata"
        assert requests[0].url.params["chain"] == "0x38"
        assert requests[0].url.params["addresses"] == TOKEN
        assert requests[0].headers["X-API-Key"] == "test-key"

    @pytest.mark.asyncio
    async def test_unknown_token(self, clock):
        async with mock_client(lambda request: httpx.Response(200, json=[])) as client:
            assert await _source(client, clock).fetch_token_info(56, TOKEN) is None

    @pytest.mark.asyncio
    async def test_malformed_metadata_is_a_miss(self, clock):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=[{"address": TOKEN, "symbol": 42, "name": "Token", "decimals": "9"}])

        async with mock_client(handler) as client:
            source = _source(client, clock)
            assert await source.fetch_token_info(56, TOKEN) is None
            assert await source.fetch_token_info(56, TOKEN) is None

        assert len(calls) == 1


@pytest.mark.unit
class TestPairOhlcv:
    @pytest.mark.asyncio
    async def test_newest_first_bars_come_back_ascending(self, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "cursor": None,
                    "result": [
                        _bar("2023-11-14T23:00:00.000Z", c="1.15", h="1.2"),
                        _bar("2023-11-14T22:00:00.000Z"),
                        _bar("garbage"),
                    ],
                },
            )

        async with mock_client(handler) as client:
            candles = await _source(client, clock).fetch_pair_ohlcv(56, PAIR, KlineInterval.H1, limit=2)

        assert [c.t for c in candles] == [1_699_999_200, 1_700_002_800]
        assert candles[1].c == "1.15"

        params = requests[0].url.params
        assert requests[0].url.path == f"/api/v2.2/pairs/{PAIR}/ohlcv"
        assert params["timeframe"] == "1h"
        assert params["limit"] == "2"
        assert params["toDate"] == _iso(NOW)
        assert params["fromDate"] == _iso(NOW - 2 * 3600)

    @pytest.mark.asyncio
    async def test_unsupported_interval_uses_coarser_timeframe(self, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"result": []})

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_pair_ohlcv(56, PAIR, KlineInterval.M15, limit=10) == []

        assert requests[0].url.params["timeframe"] == "30min"
        assert requests[0].url.params["fromDate"] == _iso(NOW - 10 * 1800)

    @pytest.mark.asyncio
    async def test_fetch_ohlcv_discovers_pair_first(self, clock):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith("/price"):
                return httpx.Response(200, json={"pairAddress": PAIR, "exchangeName": "PancakeSwap v2"})
            return httpx.Response(200, json={"result": [_bar("2023-11-14T22:00:00.000Z")]})

        async with mock_client(handler) as client:
            candles = await _source(client, clock).fetch_ohlcv(56, TOKEN, "1h", limit=5)

        assert len(candles) == 1
        assert paths == [f"/api/v2.2/erc20/{TOKEN}/price", f"/api/v2.2/pairs/{PAIR}/ohlcv"]

    @pytest.mark.asyncio
    async def test_explicit_pair_skips_discovery(self, clock):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"result": [_bar("2023-11-14T22:00:00.000Z")]})

        async with mock_client(handler) as client:
            await _source(client, clock).fetch_ohlcv(56, TOKEN, "1h", pair=PAIR)

        assert paths == [f"/api/v2.2/pairs/{PAIR}/ohlcv"]

    @pytest.mark.asyncio
    async def test_no_pair_means_no_candles(self, clock):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"message": "No pairs found"})

        async with mock_client(handler) as client:
            source = _source(client, clock)
            assert await source.fetch_ohlcv(56, TOKEN, "1h") == []
            assert await source.fetch_ohlcv(56, TOKEN, "4h") == []

        # the failed discovery is remembered across intervals
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_malformed_price_reply_means_no_candles(self, clock):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"usdPrice": 1.0, "pairAddress": 12345})

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_ohlcv(56, TOKEN, "1h") == []

        assert paths == [f"/api/v2.2/erc20/{TOKEN}/price"]

    @pytest.mark.asyncio
    async def test_ohlcv_failure_returns_empty(self, clock):
        def handler(request):
            return httpx.Response(500, text="oops")

        async with mock_client(handler) as client:
            assert await _source(client, clock).fetch_ohlcv(56, TOKEN, "1h", pair=PAIR) == []
