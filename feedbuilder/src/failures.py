"""Failure kinds reported by the pipeline and their user-facing messages.

Neither pipeline component raises to signal a failed evaluation. Results carry
one of these kinds in ``metadata["error"]`` and callers branch on it.

.. code-block:: python

    >>> describe_failure(FailureKind.INSUFFICIENT_SOURCES, {"available": 1, "required": 2})
    'need at least 2 sources, got 1'
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Reason an aggregation or extraction produced no value."""

    INSUFFICIENT_SOURCES = "insufficient_sources"
    PATH_NOT_FOUND = "path_not_found"
    NOT_SCALAR = "not_scalar"

    def __str__(self) -> str:
        return self.value


def describe_failure(kind: FailureKind | str, metadata: Mapping[str, Any]) -> str:
    """Build an actionable message for a failed result.

    :param kind: Failure kind (enum member or its string value).
    :param metadata: Result metadata carrying the failure details.
    :returns: Human-readable message.
    :raises ValueError: If ``kind`` is not a known failure kind.
    """
    kind = FailureKind(kind)

    if kind is FailureKind.INSUFFICIENT_SOURCES:
        required = metadata.get("required", "?")
        available = metadata.get("available", 0)
        noun = "source" if required == 1 else "sources"
        return f"need at least {required} {noun}, got {available}"

    path = metadata.get("path", "$")
    if kind is FailureKind.PATH_NOT_FOUND:
        if "reason" in metadata:
            return f"invalid path {path}: {metadata['reason']}"
        segment = metadata.get("segment")
        if "found" in metadata:
            return f"no value found at path {path} ({metadata['found']} has no {segment!r})"
        if segment is None:
            return f"no value found at path {path}"
        return f"no value found at path {path} (missing {segment!r})"

    found = metadata.get("found", "object")
    return f"value at path {path} is {found}, not a scalar; adjust your path selection"
