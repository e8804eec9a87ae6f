"""Numeric validation and display helpers shared by the pipeline.

Both halves of the pipeline deal with untrusted values: readings reported by
price sources and leaves pulled out of arbitrary API documents. The helpers
here decide what counts as a usable number and how values are rendered for
display.

.. code-block:: python

    >>> is_finite_number(42.0)
    True
    >>> is_finite_number(True)
    False
    >>> coerce_numeric("15234")
    15234.0
    >>> round_half_away_from_zero(2.345, 2)
    2.35
    >>> format_value({"usd": 1, "eur": 2})
    'Object(2 keys)'
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any

# Longest string rendered in full by format_value()
MAX_DISPLAY_STRING = 50

# Plain decimal literal: no NaN/Infinity spellings, no digit separators
_NUMERIC_STRING = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

Number = int | float


def _int_to_float(value: int) -> float:
    # JSON integers are unbounded; past float range they read as +/-inf
    try:
        return float(value)
    except OverflowError:
        return math.inf if value > 0 else -math.inf


def is_finite_number(value: Any) -> bool:
    """Check whether a value is a real, finite number.

    Booleans are rejected even though ``bool`` subclasses ``int``, and so are
    integers too large to be represented as a float.

    :param value: Value to check.
    :returns: True for finite ints and floats.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        return math.isfinite(_int_to_float(value))
    return math.isfinite(value)


def coerce_numeric(value: Any) -> Any:
    """Coerce a scalar to a number where it has a numeric representation.

    :param value: Scalar to coerce.
    :returns: ``int`` for booleans, ``float`` for plain decimal strings
        (``"15234"``, ``"-1.5e3"``), numbers unchanged except integers beyond
        float range (returned as ``inf``/``-inf``), anything else returned
        as-is. Strings like ``"NaN"``, ``"Infinity"`` or ``"1_000"`` are not
        numeric.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        converted = _int_to_float(value)
        return value if math.isfinite(converted) else converted
    if isinstance(value, float):
        return value
    if isinstance(value, str) and _NUMERIC_STRING.match(value.strip()):
        return float(value.strip())
    return value


def round_half_away_from_zero(value: Number, decimals: int) -> Number:
    """Round to ``decimals`` digits, ties away from zero.

    Rounding works on the shortest decimal representation of the float, so
    ``2.345`` rounds to ``2.35`` even though its binary value is slightly
    below the tie. Non-finite values are returned unchanged.

    :param value: Number to round.
    :param decimals: Number of decimal digits to keep (>= 0).
    :returns: Rounded value as float.
    """
    if not is_finite_number(value):
        return value
    dec = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    quantum = Decimal(1).scaleb(-decimals)
    # Precision must cover every integer digit plus the kept decimals
    ctx = Context(prec=max(28, dec.adjusted() + decimals + 2), rounding=ROUND_HALF_UP)
    return float(dec.quantize(quantum, context=ctx))


def ieee_divide(dividend: Number, divisor: Number) -> float:
    """Divide with IEEE-754 semantics instead of raising ZeroDivisionError.

    :param dividend: Numerator.
    :param divisor: Denominator.
    :returns: Quotient, or ``inf``/``-inf``/``nan`` for a zero divisor.
    """
    if divisor != 0:
        return dividend / divisor
    if dividend == 0 or math.isnan(dividend):
        return math.nan
    sign = math.copysign(1.0, dividend) * math.copysign(1.0, divisor)
    return math.copysign(math.inf, sign)


def value_type(value: Any) -> str:
    """Classify a parsed document node using JSON type names.

    :param value: Node from a parsed JSON document.
    :returns: One of "null", "boolean", "number", "string", "array", "object".
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def format_value(value: Any) -> str:
    """Render a document node as a short display string.

    :param value: Node from a parsed JSON document.
    :returns: Display string, e.g. ``Array(3)`` or ``"abc"``.
    """
    kind = value_type(value)
    if kind == "null":
        return "null"
    if kind == "boolean":
        return "true" if value else "false"
    if kind == "array":
        return f"Array({len(value)})"
    if kind == "object":
        return f"Object({len(value)} keys)"
    if kind == "string":
        if len(value) > MAX_DISPLAY_STRING:
            return f'"{value[:MAX_DISPLAY_STRING]}..."'
        return f'"{value}"'
    return format_number(value)


def format_number(value: Number, decimals: int | None = None) -> str:
    """Format a number for display with thousands separators.

    :param value: Number to format.
    :param decimals: Fixed number of decimals, or None to keep the value's
        own precision.
    :returns: Display string; NaN and infinities are spelled out.
    """
    if isinstance(value, int) and decimals is None:
        return f"{value:,}"
    value = coerce_numeric(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if decimals is not None:
        return f"{value:,.{decimals}f}"
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,}"
