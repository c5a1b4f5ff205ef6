#!/usr/bin/env python3
"""
Filtering of normalized records and the option lists for filter controls.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from config import DatasetSource
from constants import (
    ERA_BOUNDARY,
    MULTI_DISTRICT_MARKER,
    PERIOD_BEFORE_2009,
    PERIOD_UNKNOWN_FROM_2009,
    PERIOD_YEAR_PREFIX,
    parse_period,
    period_label,
)
from normalize.records import NormalizedRecord


@dataclass(frozen=True)
class FilterCriteria:
    """Selected filter values; empty means no filter."""
    category: str = ''
    district: str = ''
    year_period: str = ''
    query: str = ''

    @classmethod
    def from_args(cls, category: Optional[str] = None, district: Optional[str] = None,
                  year_period: Optional[str] = None, query: Optional[str] = None) -> 'FilterCriteria':
        return cls(
            category=(category or '').strip(),
            district=(district or '').strip(),
            year_period=(year_period or '').strip(),
            query=(query or '').strip(),
        )


def matches(record: NormalizedRecord, criteria: FilterCriteria) -> bool:
    """Check if a record passes every selected filter."""
    if criteria.category and record.category != criteria.category:
        return False
    if criteria.district and criteria.district not in record.districts:
        return False
    if criteria.year_period and record.year_period != criteria.year_period:
        return False
    if criteria.query:
        q = criteria.query.lower()
        if q not in record.location.lower() and q not in record.district_display.lower():
            return False
    return True


def apply_filters(records: Iterable[NormalizedRecord], criteria: FilterCriteria) -> List[NormalizedRecord]:
    """
    Filter records by category, district, year period and free-text query.

    Args:
        records: Normalized records
        criteria: Selected filters

    Returns:
        Matching records in their original order
    """
    return [r for r in records if matches(r, criteria)]


def unique_sorted(values: Iterable[str]) -> List[str]:
    """Unique non-empty values, sorted."""
    return sorted({v for v in values if v})


def year_options(records: Iterable[NormalizedRecord]) -> List[Dict[str, str]]:
    """
    Year filter options: before 2009, each known year, then unknown.

    Returns:
        List of {'value': period, 'label': display text}
    """
    periods = {r.year_period for r in records if r.year_period}

    years = sorted(
        year for year in (parse_period(p) for p in periods if p.startswith(PERIOD_YEAR_PREFIX))
        if year is not None and year >= ERA_BOUNDARY
    )

    ordered = []
    if PERIOD_BEFORE_2009 in periods:
        ordered.append(PERIOD_BEFORE_2009)
    ordered.extend(f"{PERIOD_YEAR_PREFIX}{y}" for y in years)
    if PERIOD_UNKNOWN_FROM_2009 in periods:
        ordered.append(PERIOD_UNKNOWN_FROM_2009)

    return [{'value': p, 'label': period_label(p)} for p in ordered]


def filter_options(records: List[NormalizedRecord], datasets: List[DatasetSource]) -> Dict[str, List]:
    """Option lists for the category, district and year filters."""
    districts = unique_sorted(
        d for r in records for d in r.districts if d != MULTI_DISTRICT_MARKER
    )
    return {
        'categories': [d.label for d in datasets],
        'districts': districts,
        'years': year_options(records),
    }
