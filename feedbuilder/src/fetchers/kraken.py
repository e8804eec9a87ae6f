"""Kraken fetcher.

Endpoint: https://api.kraken.com/0/public/Ticker?pair={BASE}{QUOTE}
Rate Limit: High (no key required)
"""

import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class KrakenFetcher(BaseFetcher):
    """Fetcher for the Kraken public ticker API."""

    name = "kraken"
    BASE_URL = "https://api.kraken.com/0/public"

    # Kraken uses non-standard ticker symbols
    SYMBOL_MAP = {
        "BTC": "XBT",
    }

    def market_pair(self, base: str, quote: str) -> str:
        base_u = base.upper()
        return f"{self.SYMBOL_MAP.get(base_u, base_u)}{quote.upper()}"

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch the last trade price from Kraken.

        :param base: Base currency (e.g., "BTC").
        :param quote: Quote currency (e.g., "USD").
        :returns: Current price or None on failure.
        """
        pair = self.market_pair(base, quote)

        try:
            response = await self._get(f"{self.BASE_URL}/Ticker", params={"pair": pair})
            data = response.json()

            if data.get("error"):
                logger.warning(f"[kraken] API error for {pair}: {data['error']}")
                return None

            result = data.get("result", {})
            if not result:
                logger.warning(f"[kraken] No result for {pair}")
                return None

            # Result keys are Kraken's internal pair names (e.g., XXBTZUSD)
            pair_data = next(iter(result.values()))

            # 'c' is the last trade closed array: [price, lot volume]
            return self._positive_price(pair_data["c"][0])

        except FetcherError as e:
            logger.warning(f"[kraken] Failed to fetch {pair}: {e}")
            return None
        except (KeyError, ValueError, TypeError, IndexError) as e:
            logger.warning(f"[kraken] Failed to parse response for {pair}: {e}")
            return None
