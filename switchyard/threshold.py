"""
Similarity Threshold and Limit Policy

Pure functions turning raw request values into the effective search limit
and similarity threshold.
"""

import math
import re
from typing import Any, Optional

DEFAULT_THRESHOLD = 0.65
BROAD_THRESHOLD = 0.5
SPECIFIC_THRESHOLD = 0.75

DEFAULT_LIMIT = 10
MIN_LIMIT = 1
MAX_LIMIT = 100

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def derive_threshold(query: str, explicit: Optional[Any] = None) -> float:
    """
    Return the similarity threshold to use for a query.

    An explicit numeric value is clamped to [0, 1] and used as-is. Otherwise
    the threshold starts at 0.65 and two rules run in order, each overwriting
    the running value:

    1. Broad queries (fewer than 10 characters, or at most two words) drop
       to 0.5.
    2. Specific queries (more than 30 characters, or containing "specific"
       or "exact") rise to 0.75.

    The specificity rule runs last, so it wins when both match: a short
    query containing "exact" gets 0.75, and so does a long query with only
    two words.
    """
    if _is_number(explicit):
        return clamp(float(explicit), 0.0, 1.0)

    threshold = DEFAULT_THRESHOLD

    if len(query) < 10 or len(query.split(" ")) <= 2:
        threshold = BROAD_THRESHOLD

    if len(query) > 30 or "specific" in query or "exact" in query:
        threshold = SPECIFIC_THRESHOLD

    return threshold


def effective_limit(value: Any = None) -> int:
    """
    Parse a requested result limit and clamp it to [1, 100].

    Numbers are truncated, strings contribute their leading integer.
    Missing, unparseable and zero values fall back to 10.
    """
    parsed = None
    if _is_number(value):
        if math.isfinite(value):
            parsed = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            parsed = int(match.group(1))

    if not parsed:
        parsed = DEFAULT_LIMIT

    return int(clamp(parsed, MIN_LIMIT, MAX_LIMIT))
