#!/usr/bin/env python3
"""
District resolution for Taipei traffic records.

Rows mix clean single-district values ('大安區') with free text spanning
several districts ('中山/松山區', '跨越多個行政區') or no district at all.
Resolution is two-tier:
1. Scan district, location and notes text for full names ('大安區') and
   short forms ('大安')
2. If nothing was found, split the raw district text into tokens and
   match each token against the known districts
"""

import re
from typing import List, Tuple

from constants import (
    DISTRICT_SUFFIX,
    MULTI_DISTRICT_MARKER,
    TAIPEI_DISTRICTS,
    UNSPECIFIED,
)

# Raw district values that name no specific district
NO_DISTRICT_MARKERS = (MULTI_DISTRICT_MARKER, UNSPECIFIED)

BRACKETS = re.compile(r'[()（）]')
CONNECTORS = re.compile(r'[與跟及至到-]')
SEPARATORS = re.compile(r'[、，,／/;；\s]+')


def short_name(district: str) -> str:
    """
    District name without its administrative suffix.

    Examples:
        >>> short_name('大安區')
        '大安'
    """
    if district.endswith(DISTRICT_SUFFIX):
        return district[:-len(DISTRICT_SUFFIX)]
    return district


SHORT_TO_FULL = {short_name(d): d for d in TAIPEI_DISTRICTS}


def detect_districts(text: str) -> List[str]:
    """
    Find every district mentioned in free text by full or short name.

    Examples:
        >>> detect_districts('信義路 大安區段')
        ['大安區', '信義區']
    """
    haystack = str(text or '')
    found = []
    for district in TAIPEI_DISTRICTS:
        if district in haystack or short_name(district) in haystack:
            found.append(district)
    return found


def tokenize_districts(text: str) -> List[str]:
    """
    Split raw district text on separators and connector words.

    Examples:
        >>> tokenize_districts('中山、松山(部分)')
        ['中山', '松山', '部分']
    """
    if not text:
        return []
    s = BRACKETS.sub(' ', str(text))
    s = CONNECTORS.sub(' ', s)
    return [t.strip() for t in SEPARATORS.split(s) if t.strip()]


def _match_token(token: str) -> str:
    if token in TAIPEI_DISTRICTS:
        return token
    if token in SHORT_TO_FULL:
        return SHORT_TO_FULL[token]
    return ''


def resolve_districts(raw_district: str, location: str = '', notes: str = '') -> Tuple[str, ...]:
    """
    Resolve district text to a tuple of known districts.

    Args:
        raw_district: District column value as found in the row
        location: Location text, scanned for district names
        notes: Notes text, scanned for district names

    Returns:
        Deduplicated districts in first-seen order. When nothing matches,
        the raw text itself as a single unresolved entry, or the
        unspecified sentinel if the raw text is empty or a no-district
        marker.

    Examples:
        >>> resolve_districts('大安區')
        ('大安區',)
        >>> resolve_districts('跨越多個行政區', '市民大道')
        ('（未註明）',)
    """
    rd = str(raw_district or '').strip()
    text = f"{rd} {location or ''} {notes or ''}"

    found = detect_districts(text)

    if not found:
        for token in tokenize_districts(rd):
            match = _match_token(token)
            if not match and token.endswith(DISTRICT_SUFFIX):
                match = SHORT_TO_FULL.get(short_name(token), '')
            if match:
                found.append(match)

    districts = tuple(dict.fromkeys(found))

    if not districts:
        if rd and rd not in NO_DISTRICT_MARKERS:
            return (rd,)
        return (UNSPECIFIED,)
    return districts
