"""ExtractionTransformChain: Locate a scalar in a parsed document and normalize it.

Algorithm:
    1. Parse the path expression ($, $.a.b, $.arr[0], $["odd key"]) into segments
    2. Descend the document left to right, one segment at a time
    3. Fail with path_not_found on a missing field, an out-of-range index, a
       non-container node or a malformed path
    4. Fail with not_scalar if the resolved node is an object, array or null
    5. Apply the transform steps strictly in list order

.. code-block:: python

    >>> doc = {"data": {"subscribers": 15234}}
    >>> result = extract(doc, "$.data.subscribers")
    >>> result.value
    15234
    >>> apply_transforms(result.value, [Percentage()])
    1523400
    >>> extract(doc, "$.data").error
    <FailureKind.NOT_SCALAR: 'not_scalar'>
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, TypedDict

from .failures import FailureKind
from .value_utils import (
    Number,
    coerce_numeric,
    ieee_divide,
    is_finite_number,
    round_half_away_from_zero,
    value_type,
)

logger = logging.getLogger(__name__)

Scalar = str | int | float | bool
PathSegment = str | int

ROOT = "$"

_TOKEN = re.compile(
    r"""
    \.(?P<field>[^.\[\]]+)
    | \[\s*(?P<index>-?\d+)\s*\]
    | \[\s*(?P<quote>["'])(?P<key>.*?)(?P=quote)\s*\]
    """,
    re.VERBOSE,
)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_path(path: str) -> list[PathSegment]:
    """Split a path expression into field names and list indices.

    :param path: Path such as ``$.bitcoin.usd`` or ``$.items[0]["name"]``.
        The leading ``$`` is optional.
    :returns: Segments; ints come from bracketed indices.
    :raises ValueError: If the path is malformed.

    .. code-block:: python

        >>> parse_path("$.items[0]['full name']")
        ['items', 0, 'full name']
    """
    rest = path.strip()
    if rest.startswith(ROOT):
        rest = rest[len(ROOT):]
    elif rest and rest[0] not in ".[":
        rest = "." + rest

    segments: list[PathSegment] = []
    pos = 0
    while pos < len(rest):
        match = _TOKEN.match(rest, pos)
        if match is None:
            raise ValueError(f"Malformed path '{path}' at position {pos}")
        if match.group("field") is not None:
            segments.append(match.group("field"))
        elif match.group("index") is not None:
            segments.append(int(match.group("index")))
        else:
            segments.append(match.group("key"))
        pos = match.end()
    return segments


def generate_path(keys: Sequence[PathSegment]) -> str:
    """Build a path expression from a sequence of keys.

    :param keys: Field names and list indices from the document root.
    :returns: Path expression accepted by :func:`parse_path`.

    .. code-block:: python

        >>> generate_path(["rates", "EUR"])
        '$.rates.EUR'
        >>> generate_path(["items", 0, "full name"])
        '$.items[0]["full name"]'
    """
    path = ROOT
    for key in keys:
        if isinstance(key, int):
            path += f"[{key}]"
        elif _IDENTIFIER.match(key):
            path += f".{key}"
        elif '"' in key:
            path += f"['{key}']"
        else:
            path += f'["{key}"]'
    return path


def _is_container(node: Any) -> bool:
    return isinstance(node, (Mapping, list, tuple))


def list_paths(
    document: Any, max_depth: int = 10
) -> Iterator[tuple[str, Any, str]]:
    """Walk a document and yield every scalar leaf with its path.

    Used to offer path choices for a probed document.

    :param document: Parsed document.
    :param max_depth: Deepest nesting level to descend into.
    :returns: Iterator of (path, value, type name) tuples.
    """

    def walk(node: Any, keys: list[PathSegment]) -> Iterator[tuple[str, Any, str]]:
        if isinstance(node, Mapping):
            children: Iterator[tuple[PathSegment, Any]] = iter(node.items())
        elif isinstance(node, (list, tuple)):
            children = enumerate(node)
        else:
            yield generate_path(keys), node, value_type(node)
            return
        if len(keys) >= max_depth:
            return
        for key, child in children:
            yield from walk(child, [*keys, key])

    yield from walk(document, [])


class ExtractionMetadata(TypedDict, total=False):
    """Metadata about a successful extraction.

    :ivar path: Path expression that was resolved.
    :ivar type: JSON type name of the extracted scalar.
    :ivar raw_value: Scalar before transforms (set by ExtractionSpec.evaluate).
    :ivar transforms: Number of transform steps applied.
    """

    path: str
    type: str
    raw_value: Scalar
    transforms: int


class ExtractionError(TypedDict, total=False):
    """Error information when extraction fails.

    :ivar error: Failure kind.
    :ivar path: Path expression that failed.
    :ivar segment: Segment that could not be resolved.
    :ivar depth: Number of segments resolved before the failure.
    :ivar found: JSON type name of the node that blocked resolution.
    :ivar reason: Detail for malformed paths.
    """

    error: FailureKind
    path: str
    segment: PathSegment
    depth: int
    found: str
    reason: str


@dataclass
class ExtractionResult:
    """Result of extracting (and optionally transforming) a value.

    :ivar value: Extracted scalar, or None if extraction failed.
    :ivar metadata: Additional information about the extraction.
    """

    value: Scalar | None
    metadata: ExtractionMetadata | ExtractionError

    @property
    def success(self) -> bool:
        """Check if extraction was successful."""
        return self.value is not None

    @property
    def error(self) -> FailureKind | None:
        """Get failure kind if extraction failed."""
        if self.value is None:
            return self.metadata.get("error")
        return None


def _not_found(path: str, **details: Any) -> ExtractionResult:
    return ExtractionResult(
        value=None,
        metadata={"error": FailureKind.PATH_NOT_FOUND, "path": path, **details},
    )


def extract(document: Any, path: str) -> ExtractionResult:
    """Resolve a path inside a parsed document.

    :param document: Parsed document (mappings, lists and scalars).
    :param path: Path expression; ``$`` addresses the root.
    :returns: ExtractionResult with the scalar, or a path_not_found /
        not_scalar failure.
    """
    try:
        segments = parse_path(path)
    except ValueError as e:
        return _not_found(path, reason=str(e))

    node = document
    for depth, segment in enumerate(segments):
        if isinstance(node, Mapping):
            key = str(segment)
            if key not in node:
                return _not_found(path, segment=segment, depth=depth)
            node = node[key]
        elif isinstance(node, (list, tuple)):
            if isinstance(segment, str):
                if not segment.isdecimal():
                    return _not_found(
                        path, segment=segment, depth=depth, found="array"
                    )
                segment = int(segment)
            if not 0 <= segment < len(node):
                return _not_found(path, segment=segment, depth=depth)
            node = node[segment]
        else:
            return _not_found(
                path, segment=segment, depth=depth, found=value_type(node)
            )

    if node is None or _is_container(node):
        return ExtractionResult(
            value=None,
            metadata={
                "error": FailureKind.NOT_SCALAR,
                "path": path,
                "found": value_type(node),
            },
        )

    return ExtractionResult(value=node, metadata={"path": path, "type": value_type(node)})


@dataclass(frozen=True)
class Multiply:
    """Multiply by a constant factor."""

    kind: ClassVar[str] = "multiply"
    factor: float

    def apply(self, value: Number) -> Number:
        return value * self.factor

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "value": self.factor}


@dataclass(frozen=True)
class Divide:
    """Divide by a constant. A zero divisor yields inf/-inf/nan."""

    kind: ClassVar[str] = "divide"
    divisor: float

    def apply(self, value: Number) -> Number:
        return ieee_divide(value, self.divisor)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "value": self.divisor}


@dataclass(frozen=True)
class Round:
    """Round half away from zero to a number of decimals."""

    kind: ClassVar[str] = "round"
    decimals: int = 0

    def __post_init__(self) -> None:
        if self.decimals < 0:
            raise ValueError("round decimals must be non-negative")

    def apply(self, value: Number) -> Number:
        return round_half_away_from_zero(value, self.decimals)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, "decimals": self.decimals}


@dataclass(frozen=True)
class Floor:
    kind: ClassVar[str] = "floor"

    def apply(self, value: Number) -> Number:
        return math.floor(value) if is_finite_number(value) else value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class Ceil:
    kind: ClassVar[str] = "ceil"

    def apply(self, value: Number) -> Number:
        return math.ceil(value) if is_finite_number(value) else value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class Abs:
    kind: ClassVar[str] = "abs"

    def apply(self, value: Number) -> Number:
        return abs(value)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class Percentage:
    """Convert a fraction to a percentage (multiply by 100)."""

    kind: ClassVar[str] = "percentage"

    def apply(self, value: Number) -> Number:
        return value * 100

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class Identity:
    """The "none" step. Leaves the value unchanged."""

    kind: ClassVar[str] = "none"

    def apply(self, value: Number) -> Number:
        return value

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind}


TransformStep = Multiply | Divide | Round | Floor | Ceil | Abs | Percentage | Identity

TRANSFORM_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (Multiply, Divide, Round, Floor, Ceil, Abs, Percentage, Identity)
}


def transform_from_dict(data: Mapping[str, Any]) -> TransformStep:
    """Build a transform step from its declarative form.

    :param data: Mapping like ``{"type": "multiply", "value": 2}`` or
        ``{"type": "round", "decimals": 2}``.
    :returns: TransformStep instance.
    :raises ValueError: If the type is unknown or a required operand is missing.
    """
    kind = str(data.get("type", "")).lower()
    if kind not in TRANSFORM_TYPES:
        available = ", ".join(sorted(TRANSFORM_TYPES))
        raise ValueError(f"Unknown transform '{kind}'. Available: {available}")

    if kind in (Multiply.kind, Divide.kind):
        operand = data.get("value")
        if operand is None or not is_finite_number(coerce_numeric(operand)):
            raise ValueError(f"{kind} transform requires a numeric value")
        return TRANSFORM_TYPES[kind](float(operand))
    if kind == Round.kind:
        decimals = data.get("decimals")
        return Round(int(decimals) if decimals is not None else 0)
    return TRANSFORM_TYPES[kind]()


def parse_transform(spec: str) -> TransformStep:
    """Parse a compact ``type[:operand]`` transform, e.g. ``multiply:100``.

    :param spec: Compact transform string.
    :returns: TransformStep instance.
    :raises ValueError: If the string cannot be parsed.
    """
    kind, _, operand = spec.strip().partition(":")
    kind = kind.strip().lower()
    data: dict[str, Any] = {"type": kind}
    if operand:
        data["decimals" if kind == Round.kind else "value"] = operand.strip()
    try:
        return transform_from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid transform '{spec}': {e}") from e


def apply_transforms(value: Any, steps: Sequence[TransformStep]) -> Any:
    """Apply transform steps strictly left to right.

    Booleans and numeric strings are coerced to numbers first. Non-numeric
    values are returned unchanged and every step is skipped.

    :param value: Extracted scalar.
    :param steps: Ordered transform steps.
    :returns: Transformed number, or the input unchanged if it is not numeric.

    .. code-block:: python

        >>> apply_transforms(10, [Multiply(2), Round(0)])
        20.0
        >>> apply_transforms("n/a", [Multiply(2)])
        'n/a'
    """
    result = coerce_numeric(value)
    if isinstance(result, bool) or not isinstance(result, (int, float)):
        if steps:
            logger.debug(f"Skipping {len(steps)} transforms on non-numeric {value!r}")
        return value

    for step in steps:
        result = step.apply(result)
    return result


@dataclass(frozen=True)
class ExtractionSpec:
    """Declarative extraction: a path plus an ordered transform chain.

    :ivar path: Path expression into the probed document.
    :ivar transforms: Transform steps applied in order.
    """

    path: str = ROOT
    transforms: tuple[TransformStep, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "transforms", tuple(self.transforms))

    def evaluate(self, document: Any) -> ExtractionResult:
        """Extract the configured path and apply the transform chain.

        :param document: Parsed document.
        :returns: ExtractionResult holding the transformed value, with the
            untransformed scalar kept in ``metadata["raw_value"]``.
        """
        extracted = extract(document, self.path)
        if not extracted.success:
            return extracted

        raw = extracted.value
        transformed = apply_transforms(raw, self.transforms)
        return ExtractionResult(
            value=transformed,
            metadata={
                **extracted.metadata,
                "raw_value": raw,
                "transforms": len(self.transforms),
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "jsonPath": self.path,
            "transforms": [step.to_dict() for step in self.transforms],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExtractionSpec:
        """Build a spec from ``{"jsonPath": ..., "transforms": [...]}``.

        ``none`` steps are dropped since they never change the value.

        :param data: Declarative extraction config.
        :returns: New ExtractionSpec.
        :raises ValueError: If a transform is invalid.
        """
        path = data.get("jsonPath") or data.get("path") or ROOT
        steps = [transform_from_dict(t) for t in data.get("transforms") or []]
        return cls(
            path=path,
            transforms=tuple(s for s in steps if not isinstance(s, Identity)),
        )
