#!/usr/bin/env python3
"""
Heuristic field extraction from raw dataset rows.

Datasets name the same column differently ('行政區' vs '行政區別', '路段'
vs '道路名稱'), so each field is looked up through an ordered list of
candidate aliases.
"""

import re
from typing import Any, Dict, Iterable, Optional

# Candidate aliases, most specific first
DISTRICT_KEYS = ['行政區', '行政區別', '行政區域', '區', '行政區名', '區別']
LOCATION_KEYS = ['路段', '路名', '道路名稱', '地點', '位置', '路口', '起訖', '主要路段', '主要路口']
ROAD_NAME_KEYS = ['道路名稱', '路名']
SEGMENT_KEYS = ['路段', '路口', '地點']
NOTES_KEYS = ['備註', '說明', '備考', '備註說明']

# Any key ending with 區 or mentioning 行政 likely holds a district
DISTRICT_KEY_PATTERN = re.compile(r'區$|行政')


def _clean(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _find_key_casefold(record: Dict[str, Any], key: str) -> Optional[str]:
    wanted = key.lower()
    for candidate in record:
        if str(candidate).lower() == wanted:
            return candidate
    return None


def pick_value(record: Dict[str, Any], keys: Iterable[str]) -> str:
    """
    Return the first non-empty value among candidate keys.

    Each candidate is tried as an exact key, then case-insensitively,
    before moving on to the next candidate.

    Args:
        record: Raw row
        keys: Candidate field names in priority order

    Returns:
        Stripped string value, or '' if no candidate has a value

    Examples:
        >>> pick_value({'行政區別': '大安區'}, ['行政區', '行政區別'])
        '大安區'
        >>> pick_value({'Remark': ' ok '}, ['remark'])
        'ok'
    """
    for key in keys:
        if key in record:
            value = _clean(record[key])
            if value:
                return value

        found = _find_key_casefold(record, key)
        if found is not None:
            value = _clean(record[found])
            if value:
                return value

    return ''


def guess_district(record: Dict[str, Any]) -> str:
    """Raw district text of a row."""
    value = pick_value(record, DISTRICT_KEYS)
    if value:
        return value

    for key in record:
        if DISTRICT_KEY_PATTERN.search(str(key)):
            return _clean(record[key])
    return ''


def guess_location(record: Dict[str, Any]) -> str:
    """
    Location text of a row.

    Falls back to combining a road name with a segment or intersection
    when no single location column is present.
    """
    value = pick_value(record, LOCATION_KEYS)
    if value:
        return value

    road = pick_value(record, ROAD_NAME_KEYS)
    segment = pick_value(record, SEGMENT_KEYS)
    if road and segment:
        return f"{road} {segment}"
    return road or segment


def guess_notes(record: Dict[str, Any]) -> str:
    """Free-text notes of a row."""
    return pick_value(record, NOTES_KEYS)
