"""Coinbase fetcher.

Endpoint: https://api.coinbase.com/v2/exchange-rates?currency={BASE}
Rate Limit: High (no key required)
"""

import logging

from .base import BaseFetcher, FetcherError, register_fetcher

logger = logging.getLogger(__name__)


@register_fetcher
class CoinbaseFetcher(BaseFetcher):
    """Fetcher for the Coinbase exchange-rates API.

    One request returns the base currency's rate against every quote.
    """

    name = "coinbase"
    BASE_URL = "https://api.coinbase.com/v2"

    async def fetch(self, base: str, quote: str) -> float | None:
        """Fetch the exchange rate from Coinbase.

        :param base: Base currency (e.g., "BTC").
        :param quote: Quote currency (e.g., "USD").
        :returns: Current price or None on failure.
        """
        base_u = base.upper()
        quote_u = quote.upper()

        try:
            response = await self._get(
                f"{self.BASE_URL}/exchange-rates", params={"currency": base_u}
            )
            rates = response.json().get("data", {}).get("rates", {})

            if quote_u not in rates:
                logger.warning(f"[coinbase] No {quote_u} rate for {base_u}")
                return None

            return self._positive_price(rates[quote_u])

        except FetcherError as e:
            logger.warning(f"[coinbase] Failed to fetch {base_u}/{quote_u}: {e}")
            return None
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"[coinbase] Failed to parse response for {base_u}: {e}")
            return None
