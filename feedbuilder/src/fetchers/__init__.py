"""
Price fetchers for the sources a price feed can aggregate.

Usage:
    from feedbuilder.src.fetchers import get_fetcher, get_available_fetchers

    available = get_available_fetchers()
    # ['binance', 'coinbase', 'coingecko', 'kraken']

    fetcher = get_fetcher("coinbase")
    price = await fetcher.fetch("BTC", "USD")
"""

from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .binance import BinanceFetcher
from .coinbase import CoinbaseFetcher
from .coingecko import CoinGeckoFetcher
from .kraken import KrakenFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "BinanceFetcher",
    "CoinbaseFetcher",
    "CoinGeckoFetcher",
    "KrakenFetcher",
]
