"""SourceFetchCoordinator: Concurrent per-source fetching into a reading batch.

This module is the fetch layer in front of the aggregator. It issues one
request per enabled source concurrently and hands back a complete batch of
SourceReading objects. Individual failures never abort the batch:

    - fetcher returned None         -> error reading
    - fetch timed out or raised     -> error reading
    - source has no fetcher         -> error reading
    - source does not list symbol   -> error reading

Disabled sources are left out of the batch entirely.
"""

from __future__ import annotations

import asyncio
import logging

from .FeedConfig import DataSource, FeedSymbol
from .fetchers import BaseFetcher, FetcherConfigError, get_fetcher
from .SourceAggregator import SourceReading

logger = logging.getLogger(__name__)


class SourceFetchCoordinator:
    """Fetches one reading per configured source.

    :ivar fetchers: Dict mapping source names to fetcher instances.
    :ivar fetch_timeout: Timeout for each fetch in seconds.
    """

    def __init__(
        self,
        fetchers: dict[str, BaseFetcher] | None = None,
        fetch_timeout: float = 10.0,
        api_keys: dict[str, str] | None = None,
    ) -> None:
        """Initialize the coordinator.

        :param fetchers: Pre-built fetchers by source name. Sources without an
            entry are created lazily from the fetcher registry.
        :param fetch_timeout: Timeout for each fetch (default: 10.0).
        :param api_keys: Dict mapping source names to API keys.
        """
        self.fetchers = dict(fetchers or {})
        self.fetch_timeout = fetch_timeout
        self.api_keys = api_keys or {}

    def _fetcher_for(self, source: str) -> BaseFetcher | None:
        if source not in self.fetchers:
            try:
                self.fetchers[source] = get_fetcher(
                    source,
                    api_key=self.api_keys.get(source),
                    timeout=self.fetch_timeout,
                )
            except FetcherConfigError as e:
                logger.warning(f"[{source}] {e}")
                return None
        return self.fetchers[source]

    async def fetch_readings(
        self,
        symbol: FeedSymbol,
        sources: list[DataSource] | tuple[DataSource, ...],
    ) -> list[SourceReading]:
        """Fetch a reading for the symbol from every enabled source.

        :param symbol: Symbol to price.
        :param sources: Configured sources; disabled ones are skipped.
        :returns: One reading per enabled source, in configuration order.
        """
        enabled = [s for s in sources if s.enabled]
        if not enabled:
            return []

        tasks = [self._fetch_reading(source, symbol) for source in enabled]
        readings = await asyncio.gather(*tasks)

        active = sum(1 for r in readings if r.is_active)
        logger.debug(f"{symbol}: {active}/{len(readings)} sources returned a price")
        return list(readings)

    async def _fetch_reading(
        self, source: DataSource, symbol: FeedSymbol
    ) -> SourceReading:
        """Fetch a single source with timeout.

        :param source: Source to fetch.
        :param symbol: Symbol to price.
        :returns: Active reading with the price, or an error reading.
        """
        fetcher = self._fetcher_for(source.id)
        if fetcher is None:
            return SourceReading.failed(source.id, source.weight)

        base, quote = symbol.pair_base, symbol.pair_quote
        try:
            if not await fetcher.supports_pair(base, quote):
                logger.warning(f"[{source.id}] Symbol {symbol} not supported")
                return SourceReading.failed(source.id, source.weight)

            price = await asyncio.wait_for(
                fetcher.fetch(base, quote),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{source.id}] Timeout fetching {symbol}")
            return SourceReading.failed(source.id, source.weight)
        except Exception as e:
            logger.warning(f"[{source.id}] Error fetching {symbol}: {e}")
            return SourceReading.failed(source.id, source.weight)

        if price is None:
            return SourceReading.failed(source.id, source.weight)
        return SourceReading(source.id, price, weight=source.weight)
