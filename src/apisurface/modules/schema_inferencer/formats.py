"""Semantic inference for string leaves.

Detects formats shared by every observed value and low-cardinality enums.
"""

import re
from collections import Counter

from apisurface.config import DiscoveryConfig
from apisurface.types import StringFormat

# Checked in order; the first format every value matches wins
FORMAT_PATTERNS: list[tuple[StringFormat, re.Pattern[str]]] = [
    (
        StringFormat.DATE_TIME,
        re.compile(
            r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?"
            r"([Zz]|[+-]\d{2}(:?\d{2})?)?$"
        ),
    ),
    (StringFormat.EMAIL, re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")),
    (StringFormat.URI, re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://[^\s/?#]+[^\s]*$")),
]


def detect_format(values: Counter) -> StringFormat | None:
    """Return the format matched by every distinct value, if any."""
    if not values:
        return None
    for string_format, pattern in FORMAT_PATTERNS:
        if all(pattern.match(value) for value in values):
            return string_format
    return None


def infer_string_annotations(
    values: Counter,
    config: DiscoveryConfig,
    always_present: bool,
) -> tuple[StringFormat | None, list[str] | None]:
    """Infer the (format, enum values) pair for a string leaf.

    An enum needs a value on every sample, at most `enum_max_values`
    distinct values, and at least one repeated value so that a handful of
    unique names or ids is never mistaken for an enumeration.
    """
    string_format = detect_format(values)
    if string_format is not None:
        return string_format, None

    total = sum(values.values())
    distinct = len(values)
    if (
        always_present
        and distinct
        and distinct <= config.enum_max_values
        and distinct < total
    ):
        return StringFormat.ENUM, sorted(values)

    return None, None
