"""FeedConfig: Declarative configuration for price feeds and custom API feeds.

These are the objects a builder hands to the pipeline on each evaluation.
Only configuration lives here; computed values are never stored on them.

.. code-block:: python

    >>> symbol = FeedSymbol.from_string("btc/usd")
    >>> str(symbol)
    'BTC/USD'
    >>> config = PriceFeedConfig.from_dict({
    ...     "symbol": "ETH/USD",
    ...     "dataSources": [{"id": "coingecko", "enabled": True}],
    ...     "aggregator": {"type": "mean", "minSources": 1},
    ... })
    >>> config.policy.method.value
    'mean'
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .ExtractionTransformChain import ExtractionSpec
from .SourceAggregator import AggregationPolicy

HTTP_METHODS = ("GET", "POST")


class FeedSymbol:
    """A base/quote symbol such as BTC/USD.

    :ivar pair_base: Base currency symbol (uppercase).
    :ivar pair_quote: Quote currency symbol (uppercase).
    """

    def __init__(self, pair_base: str, pair_quote: str) -> None:
        """Initialize a feed symbol.

        :param pair_base: Base currency symbol (e.g., "btc", "eth", "sol").
        :param pair_quote: Quote currency symbol (e.g., "usd").
        """
        self.pair_base = pair_base.strip().upper()
        self.pair_quote = pair_quote.strip().upper()

    def __str__(self) -> str:
        return f"{self.pair_base}/{self.pair_quote}"

    def __repr__(self) -> str:
        return f"FeedSymbol({self.pair_base!r}, {self.pair_quote!r})"

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeedSymbol):
            return NotImplemented
        return str(self) == str(other)

    @classmethod
    def from_string(cls, symbol: str) -> FeedSymbol:
        """Parse a symbol string in format "base/quote".

        :param symbol: Symbol string like "BTC/USD" or "eth/usd".
        :returns: New FeedSymbol instance.
        :raises ValueError: If the format is invalid.
        """
        parts = symbol.split("/")
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ValueError(
                f"Invalid symbol format '{symbol}'. Expected 'BASE/QUOTE' (e.g., 'BTC/USD')"
            )
        return cls(parts[0], parts[1])


@dataclass(frozen=True)
class DataSource:
    """A configured price source.

    :ivar id: Fetcher name (e.g., "coingecko").
    :ivar weight: Weight used by weighted aggregation.
    :ivar enabled: Disabled sources are never fetched.
    """

    id: str
    weight: float | None = 1.0
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DataSource:
        weight = data.get("weight")
        return cls(
            id=str(data["id"]).lower(),
            weight=float(weight) if weight is not None else None,
            enabled=bool(data.get("enabled", True)),
        )


@dataclass(frozen=True)
class PriceFeedConfig:
    """Configuration of a multi-source price feed.

    :ivar symbol: Symbol to price.
    :ivar sources: Configured sources, enabled or not.
    :ivar policy: Aggregation policy.
    """

    symbol: FeedSymbol
    sources: tuple[DataSource, ...]
    policy: AggregationPolicy = field(default_factory=AggregationPolicy)

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", tuple(self.sources))

    @property
    def enabled_sources(self) -> list[DataSource]:
        return [s for s in self.sources if s.enabled]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PriceFeedConfig:
        """Build a config from the builder's feed shape.

        :param data: Mapping with "symbol", "dataSources" and "aggregator".
        :returns: New PriceFeedConfig.
        :raises ValueError: If the symbol or aggregator is invalid.
        """
        return cls(
            symbol=FeedSymbol.from_string(data["symbol"]),
            sources=tuple(DataSource.from_dict(s) for s in data.get("dataSources", [])),
            policy=AggregationPolicy.from_dict(data.get("aggregator") or {}),
        )


@dataclass(frozen=True)
class APIHeader:
    """A request header row; disabled or keyless rows are not sent."""

    key: str
    value: str
    enabled: bool = True


def active_headers(headers: list[APIHeader] | tuple[APIHeader, ...]) -> dict[str, str]:
    """Collapse header rows into the headers actually sent.

    :param headers: Header rows.
    :returns: Dict of enabled headers with a non-empty key.
    """
    return {h.key: h.value for h in headers if h.enabled and h.key}


@dataclass(frozen=True)
class CustomFeedConfig:
    """Configuration of a feed backed by an arbitrary HTTP endpoint.

    :ivar url: Endpoint URL.
    :ivar method: HTTP method, GET or POST.
    :ivar headers: Request header rows.
    :ivar body: Request body for POST.
    :ivar extraction: Path and transform chain.
    """

    url: str
    method: str = "GET"
    headers: tuple[APIHeader, ...] = ()
    body: str | None = None
    extraction: ExtractionSpec = field(default_factory=ExtractionSpec)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", tuple(self.headers))
        if self.method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method '{self.method}'")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CustomFeedConfig:
        """Build a config from the custom-API builder's shape.

        :param data: Mapping with "url", "method", "headers", "body",
            "jsonPath" and "transforms".
        :returns: New CustomFeedConfig.
        :raises ValueError: If the method or a transform is invalid.
        """
        return cls(
            url=data["url"],
            method=data.get("method") or "GET",
            headers=tuple(
                APIHeader(h.get("key", ""), h.get("value", ""), h.get("enabled", True))
                for h in data.get("headers") or []
            ),
            body=data.get("body"),
            extraction=ExtractionSpec.from_dict(data),
        )


@dataclass(frozen=True)
class APITemplate:
    """A ready-made custom API endpoint with a suggested path."""

    name: str
    description: str
    url: str
    suggested_path: str
    category: str
    headers: tuple[APIHeader, ...] = ()

    def to_config(self) -> CustomFeedConfig:
        return CustomFeedConfig(
            url=self.url,
            headers=self.headers,
            extraction=ExtractionSpec(path=self.suggested_path),
        )


CUSTOM_API_TEMPLATES: dict[str, APITemplate] = {
    "coingecko-btc": APITemplate(
        name="CoinGecko BTC Price",
        description="Bitcoin price in USD from CoinGecko",
        url="https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd",
        suggested_path="$.bitcoin.usd",
        category="Crypto",
    ),
    "coingecko-eth": APITemplate(
        name="CoinGecko ETH Price",
        description="Ethereum price in USD from CoinGecko",
        url="https://api.coingecko.com/api/v3/simple/price?ids=ethereum&vs_currencies=usd",
        suggested_path="$.ethereum.usd",
        category="Crypto",
    ),
    "open-meteo": APITemplate(
        name="Open-Meteo Weather",
        description="Current temperature for a location",
        url=(
            "https://api.open-meteo.com/v1/forecast"
            "?latitude=40.71&longitude=-74.01&current_weather=true"
        ),
        suggested_path="$.current_weather.temperature",
        category="Weather",
    ),
    "github-stars": APITemplate(
        name="GitHub Repo Stars",
        description="Star count for a GitHub repository",
        url="https://api.github.com/repos/solana-labs/solana",
        suggested_path="$.stargazers_count",
        category="Social",
    ),
    "reddit-subscribers": APITemplate(
        name="Reddit Subreddit Subscribers",
        description="Subscriber count for a subreddit",
        url="https://www.reddit.com/r/solana/about.json",
        suggested_path="$.data.subscribers",
        category="Social",
        headers=(APIHeader("User-Agent", "FeedBuilder/1.0"),),
    ),
    "usd-eur": APITemplate(
        name="Exchange Rate (USD/EUR)",
        description="USD to EUR exchange rate",
        url="https://open.er-api.com/v6/latest/USD",
        suggested_path="$.rates.EUR",
        category="Finance",
    ),
    "random-number": APITemplate(
        name="Random Number (1-100)",
        description="Random integer from random.org (plain text response)",
        url=(
            "https://www.random.org/integers/"
            "?num=1&min=1&max=100&col=1&base=10&format=plain"
        ),
        suggested_path="$",
        category="Utility",
    ),
}


def get_template(name: str) -> APITemplate:
    """Look up a custom API template by name.

    :param name: Template name (e.g., "coingecko-btc").
    :returns: The template.
    :raises ValueError: If the name is unknown.
    """
    if name not in CUSTOM_API_TEMPLATES:
        available = ", ".join(sorted(CUSTOM_API_TEMPLATES))
        raise ValueError(f"Unknown template '{name}'. Available: {available}")
    return CUSTOM_API_TEMPLATES[name]
