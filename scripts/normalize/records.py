#!/usr/bin/env python3
"""
Normalized record schema and the row normalizer.

A NormalizedRecord is built once per raw row and never modified; the
filter layer and the API only read it.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from constants import MULTI_DISTRICT_MARKER, PERIOD_BEFORE_2009, PERIOD_UNKNOWN_FROM_2009, UNSPECIFIED

from .districts import resolve_districts
from .fields import guess_district, guess_location, guess_notes
from .years import classify_year

logger = logging.getLogger(__name__)

DISTRICT_JOINER = '、'


@dataclass(frozen=True)
class NormalizedRecord:
    """Uniform view of one raw dataset row."""
    category: str
    district_display: str
    districts: Tuple[str, ...]
    location: str
    notes: str
    year: Optional[int]
    year_period: str
    year_display: str
    source: str
    raw: Dict[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the snapshot / API shape."""
        return {
            'category': self.category,
            'district': self.district_display,
            'districts': list(self.districts),
            'location': self.location,
            'notes': self.notes,
            'year': self.year,
            'yearPeriod': self.year_period,
            'yearDisplay': self.year_display,
            'source': self.source,
            'raw': self.raw,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedRecord':
        """Rebuild a record from its serialized form."""
        return cls(
            category=data.get('category', ''),
            district_display=data.get('district', ''),
            districts=tuple(data.get('districts') or ()),
            location=data.get('location', ''),
            notes=data.get('notes', ''),
            year=data.get('year'),
            year_period=data.get('yearPeriod', PERIOD_UNKNOWN_FROM_2009),
            year_display=data.get('yearDisplay', '—'),
            source=data.get('source', ''),
            raw=data.get('raw') or {},
        )


def validate_record(record: NormalizedRecord) -> List[str]:
    """
    Validate a normalized record.

    Returns list of validation errors (empty if valid).
    """
    errors = []

    if not record.districts:
        errors.append("Empty districts")
    if MULTI_DISTRICT_MARKER in record.districts:
        errors.append(f"Districts contain marker {MULTI_DISTRICT_MARKER}")
    if len(set(record.districts)) != len(record.districts):
        errors.append("Duplicate districts")

    no_year_periods = (PERIOD_BEFORE_2009, PERIOD_UNKNOWN_FROM_2009)
    if (record.year is None) != (record.year_period in no_year_periods):
        errors.append(f"Year {record.year} inconsistent with period {record.year_period}")

    return errors


def display_district(raw_district: str, districts: Tuple[str, ...]) -> str:
    """District column text: the raw value if any, else the resolved districts."""
    if raw_district and raw_district.strip():
        return raw_district.strip()
    if districts:
        return DISTRICT_JOINER.join(districts)
    return UNSPECIFIED


def normalize_record(category: str, source: str, raw: Dict[str, Any]) -> NormalizedRecord:
    """
    Normalize one raw row.

    Args:
        category: Dataset label the row belongs to
        source: Dataset source name
        raw: Raw row as returned by the API

    Returns:
        NormalizedRecord (the raw row is kept for inspection)
    """
    raw_district = guess_district(raw)
    location = guess_location(raw) or UNSPECIFIED
    notes = guess_notes(raw)

    districts = resolve_districts(raw_district, location, notes)

    year_info = classify_year(raw)

    return NormalizedRecord(
        category=category,
        district_display=display_district(raw_district, districts),
        districts=districts,
        location=location,
        notes=notes,
        year=year_info.year,
        year_period=year_info.period,
        year_display=year_info.display or '—',
        source=source,
        raw=raw,
    )


def normalize_rows(category: str, source: str, rows: List[Dict[str, Any]]) -> List[NormalizedRecord]:
    """Normalize every row of one dataset."""
    records = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning(f"Skipping row {i} of {category}: not an object")
            continue
        records.append(normalize_record(category, source, row))

    by_period = {}
    for r in records:
        by_period[r.year_period] = by_period.get(r.year_period, 0) + 1
    logger.info(f"Normalized {len(records)} rows for {category}")
    logger.debug(f"  By period: {by_period}")

    return records
