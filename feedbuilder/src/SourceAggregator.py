"""SourceAggregator: Consensus value from independently fetched source readings.

Algorithm:
    1. Keep readings whose status is active and whose value is a finite number
    2. Fail with insufficient_sources if fewer than min_sources remain
    3. Compute the consensus by method:
        - median: sorted values at index len // 2 (no averaging on even counts)
        - mean: unweighted arithmetic mean
        - weighted: weights (missing or <= 0 count as 1) normalized over the
          active readings only
    4. Optionally attach the relative spread (max - min) / |consensus| as
       advisory metadata; a spread above the threshold never rejects the batch

.. code-block:: python

    >>> policy = AggregationPolicy(AggregationMethod.MEDIAN, min_sources=2)
    >>> readings = [
    ...     SourceReading("coingecko", 100.0),
    ...     SourceReading("binance", 102.0),
    ...     SourceReading.failed("kraken"),
    ... ]
    >>> result = aggregate(readings, policy)
    >>> result.value
    102.0
    >>> result.metadata["count"]
    2
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypedDict

from .failures import FailureKind
from .value_utils import is_finite_number

logger = logging.getLogger(__name__)


class ReadingStatus(str, Enum):
    """Liveness of a single source reading."""

    ACTIVE = "active"
    ERROR = "error"


class AggregationMethod(str, Enum):
    """Algorithm used to combine active readings."""

    MEDIAN = "median"
    MEAN = "mean"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class SourceReading:
    """One sample from one named data source.

    :ivar source_id: Source identifier, unique within a batch.
    :ivar value: Reported value, or None if the source failed.
    :ivar status: Whether the source responded successfully.
    :ivar weight: Relative weight for weighted aggregation (default 1).
    """

    source_id: str
    value: float | None
    status: ReadingStatus = ReadingStatus.ACTIVE
    weight: float | None = 1.0

    @classmethod
    def failed(cls, source_id: str, weight: float | None = 1.0) -> SourceReading:
        """Build an error reading with no value.

        :param source_id: Source that failed.
        :param weight: Configured weight of the source.
        :returns: Reading with status error.
        """
        return cls(source_id, None, ReadingStatus.ERROR, weight)

    @property
    def is_active(self) -> bool:
        """Check if the reading may contribute to a consensus."""
        return self.status == ReadingStatus.ACTIVE and is_finite_number(self.value)

    @property
    def effective_weight(self) -> float:
        """Configured weight, with missing or non-positive weights read as 1."""
        if not is_finite_number(self.weight) or self.weight <= 0:
            return 1.0
        return float(self.weight)


@dataclass(frozen=True)
class AggregationPolicy:
    """How to turn a batch of readings into one consensus value.

    :ivar method: Aggregation algorithm.
    :ivar min_sources: Minimum active readings required.
    :ivar deviation_threshold: Optional advisory spread limit in [0, 1].
    """

    method: AggregationMethod = AggregationMethod.MEDIAN
    min_sources: int = 1
    deviation_threshold: float | None = None

    def __post_init__(self) -> None:
        """Validate the policy.

        :raises ValueError: If parameters are invalid.
        """
        object.__setattr__(self, "method", AggregationMethod(self.method))
        if self.min_sources < 1:
            raise ValueError("min_sources must be at least 1")
        if self.deviation_threshold is not None and not (
            0 <= self.deviation_threshold <= 1
        ):
            raise ValueError("deviation_threshold must be between 0 and 1")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AggregationPolicy:
        """Build a policy from the builder's aggregator config.

        :param data: Mapping like ``{"type": "median", "minSources": 2,
            "deviationThreshold": 0.05}``.
        :returns: New AggregationPolicy.
        :raises ValueError: If the method is unknown or values are invalid.
        """
        method = data.get("type") or data.get("method") or AggregationMethod.MEDIAN
        try:
            method = AggregationMethod(method)
        except ValueError:
            available = ", ".join(m.value for m in AggregationMethod)
            raise ValueError(
                f"Unknown aggregation method '{method}'. Available: {available}"
            ) from None
        threshold = data.get("deviationThreshold", data.get("deviation_threshold"))
        min_sources = data.get("minSources", data.get("min_sources"))
        return cls(
            method=method,
            min_sources=int(min_sources) if min_sources is not None else 1,
            deviation_threshold=float(threshold) if threshold is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.method.value,
            "minSources": self.min_sources,
        }
        if self.deviation_threshold is not None:
            data["deviationThreshold"] = self.deviation_threshold
        return data


class ConsensusError(TypedDict, total=False):
    """Error information when aggregation fails.

    :ivar error: Failure kind.
    :ivar available: Number of active readings.
    :ivar required: Minimum configured by the policy.
    :ivar method: Method that was requested.
    """

    error: FailureKind
    available: int
    required: int
    method: AggregationMethod


class ConsensusMetadata(TypedDict, total=False):
    """Metadata about a successful aggregation.

    :ivar method: Method used.
    :ivar count: Number of contributing readings.
    :ivar sources: Contributing source ids.
    :ivar excluded: Source ids that were not active.
    :ivar spread: Relative spread (max - min) / |consensus|.
    :ivar deviation_threshold: Threshold the spread was compared against.
    :ivar exceeds_threshold: True if the spread is above the threshold.
    """

    method: AggregationMethod
    count: int
    sources: list[str]
    excluded: list[str]
    spread: float
    deviation_threshold: float
    exceeds_threshold: bool


@dataclass
class ConsensusResult:
    """Result of source aggregation.

    :ivar value: Consensus value, or None if aggregation failed.
    :ivar metadata: Additional information about the aggregation.
    """

    value: float | None
    metadata: ConsensusMetadata | ConsensusError

    @property
    def success(self) -> bool:
        """Check if aggregation was successful."""
        return self.value is not None

    @property
    def error(self) -> FailureKind | None:
        """Get failure kind if aggregation failed."""
        if self.value is None:
            return self.metadata.get("error")
        return None


def _median(values: list[float]) -> float:
    # Index len // 2: the upper of the two middle values on even counts
    return sorted(values)[len(values) // 2]


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def _weighted(readings: list[SourceReading]) -> float:
    total_weight = sum(r.effective_weight for r in readings)
    return sum(r.value * (r.effective_weight / total_weight) for r in readings)


def relative_spread(values: Iterable[float], consensus: float) -> float:
    """Compute (max - min) / |consensus|, or 0 when the consensus is 0.

    The magnitude of the consensus is used so that feeds with negative values
    report a non-negative spread.

    :param values: Contributing values.
    :param consensus: Consensus computed from the same values.
    :returns: Relative spread.
    """
    values = list(values)
    if not values or consensus == 0:
        return 0.0
    return (max(values) - min(values)) / abs(consensus)


def aggregate(
    readings: Iterable[SourceReading], policy: AggregationPolicy
) -> ConsensusResult:
    """Aggregate source readings into a single consensus value.

    :param readings: Readings for one aggregation request (may be empty).
    :param policy: Aggregation method and safeguards.
    :returns: ConsensusResult with the value and metadata, or None value with
        insufficient_sources error info.

    .. code-block:: python

        >>> policy = AggregationPolicy(AggregationMethod.MEAN, min_sources=2)
        >>> aggregate([SourceReading("a", 100.0), SourceReading("b", 101.0)], policy).value
        100.5
    """
    readings = list(readings)

    duplicates = [s for s, n in Counter(r.source_id for r in readings).items() if n > 1]
    if duplicates:
        logger.warning(f"Duplicate source ids in batch: {duplicates}")

    # Step 1: Keep active readings
    active = [r for r in readings if r.is_active]
    excluded = [r.source_id for r in readings if not r.is_active]

    if len(active) < policy.min_sources:
        logger.debug(
            f"Insufficient sources: {len(active)} active, {policy.min_sources} required"
        )
        return ConsensusResult(
            value=None,
            metadata={
                "error": FailureKind.INSUFFICIENT_SOURCES,
                "available": len(active),
                "required": policy.min_sources,
                "method": policy.method,
            },
        )

    # Step 2: Compute consensus
    values = [r.value for r in active]
    if policy.method is AggregationMethod.MEDIAN:
        consensus = _median(values)
    elif policy.method is AggregationMethod.MEAN:
        consensus = _mean(values)
    else:
        consensus = _weighted(active)

    metadata: ConsensusMetadata = {
        "method": policy.method,
        "count": len(active),
        "sources": [r.source_id for r in active],
        "excluded": excluded,
    }

    # Step 3: Advisory deviation check
    if policy.deviation_threshold is not None:
        spread = relative_spread(values, consensus)
        metadata["spread"] = spread
        metadata["deviation_threshold"] = policy.deviation_threshold
        metadata["exceeds_threshold"] = spread > policy.deviation_threshold
        if metadata["exceeds_threshold"]:
            logger.debug(
                f"Spread {spread:.4%} exceeds threshold "
                f"{policy.deviation_threshold:.4%} (advisory)"
            )

    return ConsensusResult(value=float(consensus), metadata=metadata)
