"""Binance fetcher.

Endpoint: https://api.binance.com/api/v3/ticker/24hr?symbol={BASE}USDT
Rate Limit: High (no key required for public endpoints)

Binance lists most assets against USDT only, so USD quotes are read from the
USDT pair and treated as USD.
"""

import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class BinanceFetcher(BaseFetcher):
    """Fetcher for the Binance 24h ticker endpoint."""

    name = "binance"
    BASE_URL = "https://api.binance.com/api/v3"

    # Quotes served through a stablecoin pair
    QUOTE_MAP = {"USD": "USDT"}

    def market_symbol(self, base: str, quote: str) -> str:
        quote_u = quote.upper()
        return f"{base.upper()}{self.QUOTE_MAP.get(quote_u, quote_u)}"

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch the last traded price from Binance.

        :param base: Base currency (e.g., "BTC").
        :param quote: Quote currency (e.g., "USD").
        :returns: Current price or None on failure.
        """
        symbol = self.market_symbol(base, quote)

        try:
            response = await self._get(
                f"{self.BASE_URL}/ticker/24hr", params={"symbol": symbol}
            )
            data = response.json()

            if "lastPrice" not in data:
                logger.warning(f"[binance] No lastPrice in response for {symbol}: {data}")
                return None

            return self._positive_price(data["lastPrice"])

        except FetcherError as e:
            logger.warning(f"[binance] Failed to fetch {symbol}: {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"[binance] Failed to parse response for {symbol}: {e}")
            return None
