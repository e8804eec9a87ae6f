"""Unit tests for the price fetchers.

HTTP traffic is served by an httpx.MockTransport installed as the shared client.
"""

import asyncio

import httpx
import pytest

from feedbuilder.src.fetchers import (
    BaseFetcher,
    BinanceFetcher,
    CoinbaseFetcher,
    CoinGeckoFetcher,
    FetcherConfigError,
    KrakenFetcher,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)


@pytest.fixture
def serve():
    """Install a mock shared client; returns the list of captured requests."""
    captured: list[httpx.Request] = []

    def install(handler):
        def record(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return handler(request)

        BaseFetcher._shared_client = httpx.AsyncClient(
            transport=httpx.MockTransport(record)
        )
        return captured

    yield install
    BaseFetcher._shared_client = None


class TestRegistry:
    """Test fetcher registration and lookup."""

    def test_available_fetchers(self) -> None:
        assert get_available_fetchers() == ["binance", "coinbase", "coingecko", "kraken"]

    def test_get_fetcher(self) -> None:
        fetcher = get_fetcher("kraken", timeout=3.0)
        assert isinstance(fetcher, KrakenFetcher)
        assert fetcher.timeout == 3.0

    def test_get_fetcher_default_timeout(self) -> None:
        assert get_fetcher("binance").timeout == BaseFetcher.DEFAULT_TIMEOUT

    def test_unknown_fetcher(self) -> None:
        with pytest.raises(FetcherConfigError, match="Unknown fetcher 'nope'"):
            get_fetcher("nope")

    def test_register_requires_name(self) -> None:
        class Nameless(BaseFetcher):
            async def fetch(self, base, quote):
                return None

        with pytest.raises(ValueError, match="must define a 'name'"):
            register_fetcher(Nameless)


class TestSharedClient:
    """Test shared client lifecycle."""

    def test_reused_until_closed(self) -> None:
        first = BaseFetcher.get_shared_client()
        assert BaseFetcher.get_shared_client() is first
        assert CoinbaseFetcher.get_shared_client() is first

        asyncio.run(BaseFetcher.close_shared_client())
        assert BaseFetcher._shared_client is None
        assert first.is_closed


class TestPositivePrice:
    """Test raw price validation."""

    def test_accepts_numeric_strings(self) -> None:
        assert BinanceFetcher()._positive_price("45000.5") == 45000.5

    @pytest.mark.parametrize("raw", [0, -1, "nan", "inf"])
    def test_rejects_unusable(self, raw) -> None:
        assert BinanceFetcher()._positive_price(raw) is None

    def test_non_numeric_raises(self) -> None:
        with pytest.raises(ValueError):
            BinanceFetcher()._positive_price("abc")


class TestCoinGeckoFetcher:
    """Test CoinGecko request building and parsing."""

    def test_fetch(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(200, json={"bitcoin": {"usd": 45000}})
        )
        price = asyncio.run(CoinGeckoFetcher().fetch("BTC", "USD"))

        assert price == 45000.0
        url = requests[0].url
        assert url.host == "api.coingecko.com"
        assert url.path == "/api/v3/simple/price"
        assert url.params["ids"] == "bitcoin"
        assert url.params["vs_currencies"] == "usd"

    def test_unknown_symbol_uses_lowercase_base(self) -> None:
        assert CoinGeckoFetcher().coin_id("PEPE") == "pepe"

    def test_demo_key(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(200, json={"ethereum": {"usd": 3000}})
        )
        fetcher = CoinGeckoFetcher(api_key="demo:CG-abc")
        asyncio.run(fetcher.fetch("ETH", "USD"))

        assert fetcher.api_key == "CG-abc"
        assert requests[0].url.host == "api.coingecko.com"
        assert requests[0].headers["x-cg-demo-api-key"] == "CG-abc"

    def test_pro_key(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(200, json={"ethereum": {"usd": 3000}})
        )
        asyncio.run(CoinGeckoFetcher(api_key="CG-pro").fetch("ETH", "USD"))

        assert requests[0].url.host == "pro-api.coingecko.com"
        assert requests[0].headers["x-cg-pro-api-key"] == "CG-pro"

    def test_missing_coin(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={}))
        assert asyncio.run(CoinGeckoFetcher().fetch("BTC", "USD")) is None

    def test_missing_quote(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={"bitcoin": {"eur": 1}}))
        assert asyncio.run(CoinGeckoFetcher().fetch("BTC", "USD")) is None

    def test_http_error(self, serve) -> None:
        serve(lambda request: httpx.Response(429, text="rate limited"))
        assert asyncio.run(CoinGeckoFetcher().fetch("BTC", "USD")) is None


class TestBinanceFetcher:
    """Test Binance request building and parsing."""

    def test_fetch_usd_reads_usdt_pair(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(200, json={"lastPrice": "45000.50"})
        )
        price = asyncio.run(BinanceFetcher().fetch("btc", "usd"))

        assert price == 45000.5
        assert requests[0].url.params["symbol"] == "BTCUSDT"

    def test_missing_last_price(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={"code": -1121}))
        assert asyncio.run(BinanceFetcher().fetch("BTC", "USD")) is None

    def test_zero_price(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={"lastPrice": "0"}))
        assert asyncio.run(BinanceFetcher().fetch("BTC", "USD")) is None

    def test_network_error(self, serve) -> None:
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        serve(fail)
        assert asyncio.run(BinanceFetcher().fetch("BTC", "USD")) is None


class TestCoinbaseFetcher:
    """Test Coinbase request building and parsing."""

    def test_fetch(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(
                200, json={"data": {"currency": "ETH", "rates": {"USD": "3012.45"}}}
            )
        )
        price = asyncio.run(CoinbaseFetcher().fetch("eth", "usd"))

        assert price == 3012.45
        assert requests[0].url.path == "/v2/exchange-rates"
        assert requests[0].url.params["currency"] == "ETH"

    def test_missing_rate(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={"data": {"rates": {}}}))
        assert asyncio.run(CoinbaseFetcher().fetch("ETH", "USD")) is None

    def test_invalid_json(self, serve) -> None:
        serve(lambda request: httpx.Response(200, text="<html>"))
        assert asyncio.run(CoinbaseFetcher().fetch("ETH", "USD")) is None


class TestKrakenFetcher:
    """Test Kraken request building and parsing."""

    def test_fetch(self, serve) -> None:
        requests = serve(
            lambda request: httpx.Response(
                200,
                json={"error": [], "result": {"XXBTZUSD": {"c": ["45000.1", "0.01"]}}},
            )
        )
        price = asyncio.run(KrakenFetcher().fetch("BTC", "USD"))

        assert price == 45000.1
        assert requests[0].url.params["pair"] == "XBTUSD"

    def test_api_error(self, serve) -> None:
        serve(
            lambda request: httpx.Response(
                200, json={"error": ["EQuery:Unknown asset pair"], "result": {}}
            )
        )
        assert asyncio.run(KrakenFetcher().fetch("FOO", "USD")) is None

    def test_empty_result(self, serve) -> None:
        serve(lambda request: httpx.Response(200, json={"error": [], "result": {}}))
        assert asyncio.run(KrakenFetcher().fetch("ETH", "USD")) is None

    def test_malformed_ticker(self, serve) -> None:
        serve(
            lambda request: httpx.Response(
                200, json={"error": [], "result": {"XETHZUSD": {"c": []}}}
            )
        )
        assert asyncio.run(KrakenFetcher().fetch("ETH", "USD")) is None
