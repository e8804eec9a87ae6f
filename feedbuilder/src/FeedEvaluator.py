"""FeedEvaluator: Runs one builder "Test"/"Refresh" action through the pipeline.

This module handles the glue for:
- Price feeds: readings -> SourceAggregator -> consensus
- Custom API feeds: probed document -> ExtractionTransformChain -> value
- Formatting the outcome for display, with an actionable message on failure

Every input is passed explicitly on each call; the evaluator holds no state
between evaluations.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .EndpointTester import EndpointTester, is_valid_url
from .ExtractionTransformChain import ExtractionSpec
from .failures import FailureKind, describe_failure
from .FeedConfig import CustomFeedConfig, PriceFeedConfig
from .SourceAggregator import AggregationPolicy, SourceReading, aggregate
from .SourceFetchCoordinator import SourceFetchCoordinator
from .value_utils import format_number, format_value

logger = logging.getLogger(__name__)

# Decimals used when displaying a consensus price
PRICE_DISPLAY_DECIMALS = 2


@dataclass
class FeedEvaluation:
    """Outcome of evaluating a feed configuration once.

    :ivar value: Consensus or extracted value, or None on failure.
    :ivar display: Formatted value for display ("" on failure).
    :ivar error: Failure kind, "probe_failed", or None.
    :ivar message: Actionable failure message, or None on success.
    :ivar metadata: Metadata from the underlying component.
    :ivar readings: Readings the consensus was computed from (price feeds).
    """

    value: Any
    display: str = ""
    error: str | None = None
    message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    readings: list[SourceReading] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if the evaluation produced a value."""
        return self.value is not None

    @property
    def is_finite(self) -> bool:
        """Check that a numeric value can be represented on-chain.

        Non-numeric values (strings from extraction) count as finite.
        """
        if isinstance(self.value, float):
            return math.isfinite(self.value)
        return self.value is not None


PROBE_FAILED = "probe_failed"


def _failure(kind: FailureKind, metadata: dict[str, Any], **extra: Any) -> FeedEvaluation:
    return FeedEvaluation(
        value=None,
        error=kind.value,
        message=describe_failure(kind, metadata),
        metadata=metadata,
        **extra,
    )


def evaluate_price_feed(
    readings: Iterable[SourceReading], policy: AggregationPolicy
) -> FeedEvaluation:
    """Aggregate an already-fetched batch of readings.

    :param readings: Readings for one aggregation request.
    :param policy: Aggregation policy.
    :returns: FeedEvaluation with the consensus and its display string.
    """
    readings = list(readings)
    result = aggregate(readings, policy)

    if not result.success:
        evaluation = _failure(result.error, dict(result.metadata), readings=readings)
        logger.warning(f"Price feed aggregation failed: {evaluation.message}")
        return evaluation

    meta = dict(result.metadata)
    breakdown = ", ".join(
        f"{r.source_id}={format_number(r.value, PRICE_DISPLAY_DECIMALS)}"
        for r in readings
        if r.is_active
    )
    log_msg = (
        f"Consensus {format_number(result.value, PRICE_DISPLAY_DECIMALS)} "
        f"({policy.method.value} of [{breakdown}]"
    )
    if meta.get("excluded"):
        log_msg += f", excluded: {meta['excluded']}"
    log_msg += ")"
    logger.info(log_msg)

    if meta.get("exceeds_threshold"):
        logger.warning(
            f"Source spread {meta['spread']:.2%} exceeds deviation threshold "
            f"{meta['deviation_threshold']:.2%}"
        )

    return FeedEvaluation(
        value=result.value,
        display=format_number(result.value, PRICE_DISPLAY_DECIMALS),
        metadata=meta,
        readings=readings,
    )


def evaluate_custom_feed(document: Any, spec: ExtractionSpec) -> FeedEvaluation:
    """Extract and transform a value from an already-probed document.

    :param document: Parsed document returned by the endpoint.
    :param spec: Path and transform chain.
    :returns: FeedEvaluation with the transformed value.
    """
    result = spec.evaluate(document)

    if not result.success:
        evaluation = _failure(result.error, dict(result.metadata))
        logger.warning(f"Extraction failed: {evaluation.message}")
        return evaluation

    evaluation = FeedEvaluation(
        value=result.value,
        display=format_value(result.value),
        metadata=dict(result.metadata),
    )
    if not evaluation.is_finite:
        logger.warning(
            f"Transforms produced a non-finite value at {spec.path}: "
            f"{evaluation.display}"
        )
    else:
        logger.info(
            f"Extracted {format_value(result.metadata['raw_value'])} at {spec.path} "
            f"-> {evaluation.display}"
        )
    return evaluation


async def refresh_price_feed(
    config: PriceFeedConfig, coordinator: SourceFetchCoordinator
) -> FeedEvaluation:
    """Fetch every enabled source and aggregate the readings.

    :param config: Price feed configuration.
    :param coordinator: Fetch layer used to gather readings.
    :returns: FeedEvaluation.
    """
    readings = await coordinator.fetch_readings(config.symbol, config.sources)
    return evaluate_price_feed(readings, config.policy)


async def probe_custom_feed(
    config: CustomFeedConfig, tester: EndpointTester
) -> FeedEvaluation:
    """Probe a custom endpoint and extract the configured value.

    :param config: Custom feed configuration.
    :param tester: Endpoint tester used for the probe.
    :returns: FeedEvaluation; a failed probe reports "probe_failed".
    """
    if not is_valid_url(config.url):
        return FeedEvaluation(
            value=None,
            error=PROBE_FAILED,
            message=f"invalid URL {config.url!r}; use an http(s) address",
        )

    probe = await tester.probe_config(config)
    if not probe.success:
        logger.warning(f"Probe of {config.url} failed: {probe.error}")
        return FeedEvaluation(
            value=None,
            error=PROBE_FAILED,
            message=probe.error,
            metadata={"status_code": probe.status_code},
        )

    evaluation = evaluate_custom_feed(probe.data, config.extraction)
    evaluation.metadata["status_code"] = probe.status_code
    evaluation.metadata["response_time_ms"] = probe.response_time_ms
    return evaluation
