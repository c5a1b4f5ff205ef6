#!/usr/bin/env python3
"""
Year classification for mixed ROC / Gregorian year text.

Taipei datasets record implementation years as free text in the ROC
(Minguo) calendar, sometimes in Gregorian years, sometimes as ranges or
"before" phrases. Each record is bucketed into a year period:
- 'before2009': anything before 2009
- 'year_<N>': a specific year from 2009 on
- 'unknownFrom2009': no usable year (the datasets start in 2009)

Handles, in this order:
- "97年以前", "98前" -> before2009
- "98-101年間", "100~102年" -> converted range
- "101年" -> single ROC year
- "2012年" -> single Gregorian year
- "101" -> bare ROC number
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from constants import (
    DISPLAY_BEFORE_2009,
    DISPLAY_UNKNOWN_FROM_2009,
    PERIOD_BEFORE_2009,
    PERIOD_UNKNOWN_FROM_2009,
    ROC_OFFSET,
    determine_period,
)

from .fields import pick_value

YEAR_KEYS = ['年份', '實施年份', '實施日期', '公告年份', '開放年份', '管制年份', '年度']

# ROC years 89-199, never taken from inside a longer number
ROC = r'(?<!\d)(89|9\d|1\d\d)'

BEFORE_PATTERN = re.compile(r'9[0-8]年?以?前')
RANGE_PATTERN = re.compile(ROC + r'\s*[-~～至到]\s*(89|9\d|1\d\d)(?!\d)年?[間期]?')
ROC_YEAR_PATTERN = re.compile(ROC + r'年')
AD_YEAR_PATTERN = re.compile(r'(?<!\d)(20\d{2})年')
BARE_ROC_PATTERN = re.compile(r'^(89|9\d|1\d\d)$')


@dataclass(frozen=True)
class YearInfo:
    """Classified year of a record."""
    year: Optional[int]
    period: str
    display: str


UNKNOWN = YearInfo(year=None, period=PERIOD_UNKNOWN_FROM_2009, display=DISPLAY_UNKNOWN_FROM_2009)


def roc_to_ad(roc_year: int) -> int:
    """
    Convert a ROC calendar year to Gregorian.

    Examples:
        >>> roc_to_ad(98)
        2009
    """
    return roc_year + ROC_OFFSET


def _single_year(ad: int) -> YearInfo:
    period = determine_period(ad)
    year = ad if period != PERIOD_BEFORE_2009 else None
    return YearInfo(year=year, period=period, display=f"{ad}年")


def year_text(record: Dict[str, Any]) -> str:
    """Year text of a record: a labeled year field, else all string values."""
    text = pick_value(record, YEAR_KEYS)
    if text:
        return text
    return ' '.join(v for v in record.values() if isinstance(v, str))


def classify_text(text: str) -> YearInfo:
    """
    Classify year text into a year period.

    Examples:
        >>> classify_text('101年')
        YearInfo(year=2012, period='year_2012', display='2012年')
        >>> classify_text('98年')
        YearInfo(year=2009, period='year_2009', display='2009年')
        >>> classify_text('97年以前').period
        'before2009'
        >>> classify_text('98-101年間')
        YearInfo(year=None, period='unknownFrom2009', display='2009-2012年間')
    """
    if not text or not text.strip():
        return UNKNOWN

    if BEFORE_PATTERN.search(text):
        return YearInfo(year=None, period=PERIOD_BEFORE_2009, display=DISPLAY_BEFORE_2009)

    match = RANGE_PATTERN.search(text)
    if match:
        start = roc_to_ad(int(match.group(1)))
        end = roc_to_ad(int(match.group(2)))
        period = determine_period(start)
        if period != PERIOD_BEFORE_2009:
            period = PERIOD_UNKNOWN_FROM_2009
        return YearInfo(year=None, period=period, display=f"{start}-{end}年間")

    match = ROC_YEAR_PATTERN.search(text)
    if match:
        return _single_year(roc_to_ad(int(match.group(1))))

    match = AD_YEAR_PATTERN.search(text)
    if match:
        return _single_year(int(match.group(1)))

    match = BARE_ROC_PATTERN.match(text.strip())
    if match:
        return _single_year(roc_to_ad(int(match.group(1))))

    return UNKNOWN


def classify_year(record: Dict[str, Any]) -> YearInfo:
    """Classify the implementation year of a raw row."""
    return classify_text(year_text(record))
