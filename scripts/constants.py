"""
Centralized constants for the Taipei motorcycle traffic rules pipeline.

District names, sentinel markers, era boundaries and paging limits are
shared by ingestion, normalization and the filter layer.
Import from here to ensure consistency.
"""

from enum import Enum
from typing import Optional


class District(str, Enum):
    """Taipei's 12 administrative districts."""
    ZHONGZHENG = '中正區'
    DATONG = '大同區'
    ZHONGSHAN = '中山區'
    SONGSHAN = '松山區'
    DAAN = '大安區'
    WANHUA = '萬華區'
    XINYI = '信義區'
    SHILIN = '士林區'
    BEITOU = '北投區'
    NEIHU = '內湖區'
    NANGANG = '南港區'
    WENSHAN = '文山區'


TAIPEI_DISTRICTS = [d.value for d in District]

# Administrative suffix stripped to get a district's short form
DISTRICT_SUFFIX = '區'

# Raw district markers that carry no specific district
MULTI_DISTRICT_MARKER = '跨越多個行政區'
UNSPECIFIED = '（未註明）'

# Calendar conversion
ROC_OFFSET = 1911  # Gregorian year = ROC year + 1911

# Year periods
ERA_BOUNDARY = 2009  # Years strictly below this are 'before2009'
PERIOD_BEFORE_2009 = 'before2009'
PERIOD_UNKNOWN_FROM_2009 = 'unknownFrom2009'
PERIOD_YEAR_PREFIX = 'year_'

DISPLAY_BEFORE_2009 = '2009年以前'
DISPLAY_UNKNOWN_FROM_2009 = '2009年起（具體年份不明）'

# Pagination
PAGE_SIZE = 1000
MAX_PAGES = 200  # Hard cap on requests per dataset
REQUEST_TIMEOUT = 60

# Snapshot cache
SNAPSHOT_VERSION = 1


def determine_period(year: int) -> str:
    """
    Determine which year period a Gregorian year falls into.

    Args:
        year: The Gregorian year to categorize

    Returns:
        'before2009' or 'year_<year>'

    Examples:
        >>> determine_period(2008)
        'before2009'
        >>> determine_period(2009)
        'year_2009'
        >>> determine_period(2012)
        'year_2012'
    """
    if year < ERA_BOUNDARY:
        return PERIOD_BEFORE_2009
    return f"{PERIOD_YEAR_PREFIX}{year}"


def parse_period(period: Optional[str]) -> Optional[int]:
    """
    Extract the year from a 'year_<N>' period key.

    Examples:
        >>> parse_period('year_2012')
        2012
        >>> parse_period('before2009') is None
        True
    """
    if not period or not period.startswith(PERIOD_YEAR_PREFIX):
        return None
    try:
        return int(period[len(PERIOD_YEAR_PREFIX):])
    except ValueError:
        return None


def period_label(period: str) -> str:
    """Human readable label for a year period key."""
    if period == PERIOD_BEFORE_2009:
        return DISPLAY_BEFORE_2009
    if period == PERIOD_UNKNOWN_FROM_2009:
        return DISPLAY_UNKNOWN_FROM_2009
    year = parse_period(period)
    return f"{year}年" if year is not None else period
