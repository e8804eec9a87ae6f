"""CoinGecko fetcher.

Endpoint: https://api.coingecko.com/api/v3/simple/price?ids={id}&vs_currencies={quote}
Rate Limit: 30 calls/min (free), higher with API key
"""

import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinGeckoFetcher(BaseFetcher):
    """Fetcher for the CoinGecko simple price API.

    API tiers:
        - Free: api.coingecko.com (no key)
        - Demo: api.coingecko.com + x-cg-demo-api-key header
        - Pro: pro-api.coingecko.com + x-cg-pro-api-key header

    Demo keys are prefixed with "demo:": API_KEY_COINGECKO=demo:CG-xxxxx
    """

    name = "coingecko"
    BASE_URL_FREE = "https://api.coingecko.com/api/v3"
    BASE_URL_PRO = "https://pro-api.coingecko.com/api/v3"

    # Map common symbols to CoinGecko IDs; unknown symbols use the
    # lowercased base as the id
    COIN_IDS = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
        "SOL": "solana",
        "BNB": "binancecoin",
        "ADA": "cardano",
        "XRP": "ripple",
        "DOGE": "dogecoin",
        "DOT": "polkadot",
        "MATIC": "matic-network",
        "AVAX": "avalanche-2",
        "USDT": "tether",
        "USDC": "usd-coin",
        "LINK": "chainlink",
    }

    def __init__(self, api_key: str | None = None, timeout: float | None = None):
        """Initialize with optional demo: prefix handling."""
        self._is_demo = False
        if api_key and api_key.lower().startswith("demo:"):
            self._is_demo = True
            api_key = api_key[5:]
        super().__init__(api_key=api_key, timeout=timeout)

    @property
    def base_url(self) -> str:
        if not self.has_api_key or self._is_demo:
            return self.BASE_URL_FREE
        return self.BASE_URL_PRO

    @property
    def api_headers(self) -> dict[str, str] | None:
        if not self.has_api_key:
            return None
        header_name = "x-cg-demo-api-key" if self._is_demo else "x-cg-pro-api-key"
        return {header_name: self.api_key}

    def coin_id(self, base: str) -> str:
        return self.COIN_IDS.get(base.upper(), base.lower())

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch price from CoinGecko.

        :param base: Base currency (e.g., "BTC").
        :param quote: Quote currency (e.g., "USD").
        :returns: Current price or None on failure.
        """
        coin_id = self.coin_id(base)
        quote_lower = quote.lower()

        try:
            response = await self._get(
                f"{self.base_url}/simple/price",
                params={"ids": coin_id, "vs_currencies": quote_lower},
                headers=self.api_headers,
            )
            data = response.json()

            if coin_id not in data:
                logger.warning(f"[coingecko] Coin {coin_id} not in response: {data}")
                return None

            if quote_lower not in data[coin_id]:
                logger.warning(
                    f"[coingecko] Quote {quote_lower} not available for {coin_id}"
                )
                return None

            return self._positive_price(data[coin_id][quote_lower])

        except FetcherError as e:
            logger.warning(f"[coingecko] Failed to fetch {base}/{quote}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coingecko] Failed to parse response: {e}")
            return None
