"""
Feed Builder - Oracle Value Aggregation & Extraction Pipeline

This module turns untrusted external data into a single oracle value:
- SourceAggregator: Consensus (median, mean, weighted) over source readings
- ExtractionTransformChain: Path extraction and ordered numeric transforms
- FeedConfig: Declarative price feed and custom API feed configuration
- SourceFetchCoordinator: Concurrent per-source fetching into readings
- EndpointTester: Single HTTP probe of a custom endpoint
- FeedEvaluator: Glue that runs one evaluation and formats the outcome
- fetchers: Modular price fetcher implementations
"""

from .EndpointTester import EndpointTester, ProbeResult
from .ExtractionTransformChain import (
    Abs,
    Ceil,
    Divide,
    ExtractionResult,
    ExtractionSpec,
    Floor,
    Identity,
    Multiply,
    Percentage,
    Round,
    TransformStep,
    apply_transforms,
    extract,
)
from .failures import FailureKind, describe_failure
from .FeedConfig import CustomFeedConfig, DataSource, FeedSymbol, PriceFeedConfig
from .FeedEvaluator import (
    FeedEvaluation,
    evaluate_custom_feed,
    evaluate_price_feed,
    probe_custom_feed,
    refresh_price_feed,
)
from .SourceAggregator import (
    AggregationMethod,
    AggregationPolicy,
    ConsensusResult,
    ReadingStatus,
    SourceReading,
    aggregate,
)
from .SourceFetchCoordinator import SourceFetchCoordinator

__all__ = [
    "Abs",
    "AggregationMethod",
    "AggregationPolicy",
    "Ceil",
    "ConsensusResult",
    "CustomFeedConfig",
    "DataSource",
    "Divide",
    "EndpointTester",
    "ExtractionResult",
    "ExtractionSpec",
    "FailureKind",
    "FeedEvaluation",
    "FeedSymbol",
    "Floor",
    "Identity",
    "Multiply",
    "Percentage",
    "PriceFeedConfig",
    "ProbeResult",
    "ReadingStatus",
    "Round",
    "SourceFetchCoordinator",
    "SourceReading",
    "TransformStep",
    "aggregate",
    "apply_transforms",
    "describe_failure",
    "evaluate_custom_feed",
    "evaluate_price_feed",
    "extract",
    "probe_custom_feed",
    "refresh_price_feed",
]
