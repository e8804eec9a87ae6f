#!/usr/bin/env python3
"""Feed Builder CLI.

Runs one evaluation of a feed configuration: either a multi-source price
feed aggregated into a consensus value, or a custom API endpoint from which a
value is extracted and transformed.

Options default to environment variables; CLI args take precedence.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.EndpointTester import EndpointTester
from .src.ExtractionTransformChain import ExtractionSpec, parse_transform
from .src.FeedConfig import (
    APIHeader,
    CUSTOM_API_TEMPLATES,
    CustomFeedConfig,
    DataSource,
    FeedSymbol,
    PriceFeedConfig,
    get_template,
)
from .src.FeedEvaluator import FeedEvaluation, probe_custom_feed, refresh_price_feed
from .src.fetchers import BaseFetcher, get_available_fetchers
from .src.SourceAggregator import AggregationMethod, AggregationPolicy
from .src.SourceFetchCoordinator import SourceFetchCoordinator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: coingecko=demo:abc123

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys() -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_COINGECKO, API_KEY_BINANCE, etc.

    :returns: Dict mapping source names to API keys.
    """
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]

    for key, value in os.environ.items():
        for prefix in prefixes:
            if key.startswith(prefix) and value:
                source = key[len(prefix):].lower()
                api_keys[source] = value
                break

    return api_keys


def parse_sources(sources_str: str) -> list[DataSource]:
    """Parse comma-separated sources with optional weights.

    Format: source[:weight],... e.g. coingecko:2,binance,kraken:0.5

    :param sources_str: Comma-separated source list.
    :returns: List of DataSource entries.
    :raises ValueError: If a weight is not a number.
    """
    sources = []
    for item in sources_str.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, weight = item.partition(":")
        sources.append(
            DataSource(id=name.strip().lower(), weight=float(weight) if weight else 1.0)
        )
    return sources


def parse_header(header_str: str) -> APIHeader:
    """Parse a "Key: Value" request header.

    :param header_str: Header string.
    :returns: APIHeader row.
    :raises ValueError: If the header has no colon.
    """
    key, sep, value = header_str.partition(":")
    if not sep or not key.strip():
        raise ValueError(f"Invalid header '{header_str}'. Expected 'Key: Value'")
    return APIHeader(key.strip(), value.strip())


def report(evaluation: FeedEvaluation) -> int:
    """Log the evaluation outcome and return the process exit code."""
    if not evaluation.success:
        logger.error(f"Evaluation failed ({evaluation.error}): {evaluation.message}")
        return 1

    logger.info(f"Value: {evaluation.display}")
    if "spread" in evaluation.metadata:
        advisory = " (exceeds threshold)" if evaluation.metadata["exceeds_threshold"] else ""
        logger.info(f"Spread: {evaluation.metadata['spread']:.4%}{advisory}")
    if not evaluation.is_finite:
        logger.warning("Value is not finite and cannot be published on-chain")
    return 0


async def run_price(args: argparse.Namespace, api_keys: dict[str, str]) -> int:
    config = PriceFeedConfig(
        symbol=FeedSymbol.from_string(args.symbol),
        sources=parse_sources(args.sources),
        policy=AggregationPolicy(
            method=AggregationMethod(args.method),
            min_sources=args.min_sources,
            deviation_threshold=args.deviation_threshold,
        ),
    )
    logger.info("=" * 60)
    logger.info(f"Symbol:            {config.symbol}")
    logger.info(f"Sources:           {', '.join(s.id for s in config.sources)}")
    logger.info(f"Method:            {config.policy.method.value}")
    logger.info(f"Min Sources:       {config.policy.min_sources}")
    if config.policy.deviation_threshold is not None:
        logger.info(f"Deviation Limit:   {config.policy.deviation_threshold:.2%}")
    logger.info("=" * 60)

    coordinator = SourceFetchCoordinator(
        fetch_timeout=args.fetch_timeout, api_keys=api_keys
    )
    try:
        evaluation = await refresh_price_feed(config, coordinator)
    finally:
        await BaseFetcher.close_shared_client()
    return report(evaluation)


async def run_custom(args: argparse.Namespace) -> int:
    transforms = tuple(parse_transform(t) for t in args.transform or [])
    headers = tuple(parse_header(h) for h in args.header or [])

    if args.template:
        template = get_template(args.template)
        base = template.to_config()
        config = CustomFeedConfig(
            url=args.url or base.url,
            method=args.method,
            headers=base.headers + headers,
            body=args.body,
            extraction=ExtractionSpec(
                path=args.path or base.extraction.path, transforms=transforms
            ),
        )
    else:
        config = CustomFeedConfig(
            url=args.url,
            method=args.method,
            headers=headers,
            body=args.body,
            extraction=ExtractionSpec(path=args.path or "$", transforms=transforms),
        )

    logger.info("=" * 60)
    logger.info(f"URL:               {config.url}")
    logger.info(f"Method:            {config.method}")
    logger.info(f"Path:              {config.extraction.path}")
    logger.info(
        f"Transforms:        {[t.to_dict() for t in config.extraction.transforms]}"
    )
    logger.info("=" * 60)

    tester = EndpointTester(timeout=args.fetch_timeout)
    try:
        evaluation = await probe_custom_feed(config, tester)
    finally:
        await BaseFetcher.close_shared_client()
    return report(evaluation)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the feed builder CLI."""
    available_sources = get_available_fetchers()
    methods = [m.value for m in AggregationMethod]

    parser = argparse.ArgumentParser(
        description="Feed Builder: evaluate oracle feed configurations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price sources:
  {', '.join(available_sources)}

Custom API templates:
  {', '.join(sorted(CUSTOM_API_TEMPLATES))}

Examples:
  # Median of three sources, at least two must respond
  python -m feedbuilder.main price --symbol BTC/USD \\
      --sources coingecko,binance,kraken --min-sources 2

  # Weighted average with per-source weights
  python -m feedbuilder.main price --symbol ETH/USD \\
      --sources coingecko:2,coinbase:1 --method weighted

  # Extract and scale a value from a custom endpoint
  python -m feedbuilder.main custom --template coingecko-btc \\
      --transform multiply:100 --transform round:0

Environment variables (CLI args take precedence):
  SYMBOL, SOURCES, METHOD, MIN_SOURCES, DEVIATION_THRESHOLD, FETCH_TIMEOUT,
  API_KEYS, API_KEY_COINGECKO, etc.
""",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for individual requests in seconds (default: 10.0)",
        default=os.environ.get("FETCH_TIMEOUT") or "10.0",
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., coingecko=demo:abc)",
        default=os.environ.get("API_KEYS"),
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    price = subparsers.add_parser("price", help="Aggregate a multi-source price feed")
    price.add_argument(
        "--symbol",
        type=str,
        help="Symbol to price (e.g., BTC/USD)",
        default=os.environ.get("SYMBOL") or "BTC/USD",
    )
    price.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated sources with optional :weight. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or "coingecko,binance,coinbase,kraken",
    )
    price.add_argument(
        "--method",
        type=str,
        choices=methods,
        help="Aggregation method (default: median)",
        default=os.environ.get("METHOD") or "median",
    )
    price.add_argument(
        "--min-sources",
        dest="min_sources",
        type=int,
        help="Minimum active sources required (default: 1)",
        default=os.environ.get("MIN_SOURCES") or "1",
    )
    price.add_argument(
        "--deviation-threshold",
        dest="deviation_threshold",
        type=float,
        help="Advisory max relative spread between sources, 0-1 (default: off)",
        default=os.environ.get("DEVIATION_THRESHOLD") or None,
    )

    custom = subparsers.add_parser("custom", help="Extract a value from a custom API")
    custom.add_argument("--url", type=str, help="Endpoint URL")
    custom.add_argument(
        "--template",
        type=str,
        choices=sorted(CUSTOM_API_TEMPLATES),
        help="Start from a built-in endpoint template",
    )
    custom.add_argument(
        "--method",
        type=str.upper,
        choices=["GET", "POST"],
        default="GET",
        help="HTTP method (default: GET)",
    )
    custom.add_argument(
        "--header",
        action="append",
        help="Request header 'Key: Value' (repeatable)",
    )
    custom.add_argument("--body", type=str, help="Request body for POST")
    custom.add_argument(
        "--path",
        type=str,
        help="Path to the value (e.g., $.bitcoin.usd; default: $ or template path)",
    )
    custom.add_argument(
        "--transform",
        action="append",
        help="Transform step type[:operand], applied in order (repeatable), "
        "e.g. multiply:100, divide:1e6, round:2, floor, ceil, abs, percentage",
    )

    return parser


def main() -> None:
    """Main entry point for the feed builder CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "price":
        if args.min_sources < 1:
            parser.error("--min-sources must be at least 1")
        if args.deviation_threshold is not None and not 0 <= args.deviation_threshold <= 1:
            parser.error("--deviation-threshold must be between 0 and 1")
        try:
            sources = parse_sources(args.sources)
        except ValueError:
            parser.error(f"Invalid source weight in '{args.sources}'")
        if not sources:
            parser.error("At least one source must be specified")
        runner = run_price(args, {**parse_env_api_keys(), **parse_api_keys(args.api_keys)})
    else:
        if not args.url and not args.template:
            parser.error("Either --url or --template must be specified")
        runner = run_custom(args)

    try:
        exit_code = asyncio.run(runner)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        exit_code = 130
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        exit_code = 2
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
