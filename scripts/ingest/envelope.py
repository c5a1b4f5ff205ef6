#!/usr/bin/env python3
"""
Unwrapping of open-data API response envelopes.

The data.taipei API wraps rows as {"result": {"count": N, "results": [...]}},
but other shapes are seen in the wild:
- {"result": {"records": [...]}}
- {"data": [...]}
- a bare array
- a result object whose row array sits under an arbitrary key
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import EmptyEnvelopeError

# Wrapper keys tried in order; the payload itself is used when none is present
RESULT_KEYS = ('result', 'Result', 'data')

# Row array keys tried in order before falling back to any array-valued key
ROW_KEYS = ('results', 'records')


@dataclass
class Page:
    """One page of rows plus the declared total, if any."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    count: Optional[int] = None


def _find_result(payload: Any) -> Any:
    if isinstance(payload, dict):
        for key in RESULT_KEYS:
            if payload.get(key) is not None:
                return payload[key]
    return payload


def _declared_count(result: Any) -> Optional[int]:
    if not isinstance(result, dict):
        return None
    count = result.get('count')
    # bool is an int subclass
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        return None
    return int(count)


def unwrap_envelope(payload: Any) -> Page:
    """
    Extract the row array and declared count from an API response.

    Args:
        payload: Decoded JSON response body

    Returns:
        Page with rows and the declared total count (None if absent)

    Raises:
        EmptyEnvelopeError: if no row array can be found
    """
    result = _find_result(payload)

    if result is None:
        raise EmptyEnvelopeError("Response has no result object")

    if isinstance(result, list):
        return Page(rows=result, count=None)

    if not isinstance(result, dict):
        raise EmptyEnvelopeError(f"Unexpected result type: {type(result).__name__}")

    count = _declared_count(result)

    for key in ROW_KEYS:
        if isinstance(result.get(key), list):
            return Page(rows=result[key], count=count)

    for key, value in result.items():
        if isinstance(value, list):
            return Page(rows=value, count=count)

    raise EmptyEnvelopeError(f"No row array in result (keys: {sorted(result)})")
