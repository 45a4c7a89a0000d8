"""Tolerant comparison of query result sets."""

from __future__ import annotations

import re
from typing import Any, Sequence

RELATIVE_TOLERANCE = 1e-4
EPSILON = 1e-12

_NUMERIC = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def as_number(value: Any) -> float | None:
    """Return `value` as a float when it is numeric or a decimal string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMERIC.match(value.strip()):
        return float(value)
    return None


def values_equal(a: Any, b: Any) -> bool:
    """Numbers match within relative tolerance; anything else must be deeply equal.

    Types must agree outside the numeric case, so a boolean never matches
    the number 1 and a list never matches a tuple. Containers are compared
    element by element with the same rules.
    """
    fa, fb = as_number(a), as_number(b)
    if fa is not None and fb is not None:
        if fa == fb:
            return True
        average = abs((fa + fb) / 2)
        return abs(fa - fb) / max(average, EPSILON) < RELATIVE_TOLERANCE
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(values_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def rows_equal(a: dict[str, Any], b: dict[str, Any]) -> bool:
    # Single-column rows (aggregates) compare by value; aliases may differ.
    if len(a) == 1 and len(b) == 1:
        return values_equal(next(iter(a.values())), next(iter(b.values())))
    if a.keys() != b.keys():
        return False
    return all(values_equal(value, b[key]) for key, value in a.items())


def data_equal(
    expected: Sequence[dict[str, Any]],
    actual: Sequence[dict[str, Any]],
    *,
    ordered: bool = True,
) -> bool:
    """Compare two result sets, positionally or as multisets."""
    if len(expected) != len(actual):
        return False
    if ordered:
        return all(rows_equal(a, b) for a, b in zip(expected, actual))

    unmatched = list(actual)
    for row in expected:
        for index, candidate in enumerate(unmatched):
            if rows_equal(row, candidate):
                del unmatched[index]
                break
        else:
            return False
    return True
