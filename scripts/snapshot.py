#!/usr/bin/env python3
"""
Versioned snapshot cache of the last successful load.

Snapshot format:
    {
        "version": 1,
        "timestamp": "2024-01-20T08:00:00+00:00",
        "normalized": [...],   # NormalizedRecord.to_dict() entries
        "raw": [...]           # {id, label, source, rows} per dataset
    }

A snapshot with any other version, or whose record lists do not hold
objects, is treated as absent.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from constants import SNAPSHOT_VERSION

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Reads and writes the snapshot file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, normalized: List[Dict[str, Any]], raw: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Write a snapshot.

        Args:
            normalized: Serialized normalized records
            raw: Per-dataset raw captures

        Returns:
            The snapshot that was written
        """
        data = {
            'version': SNAPSHOT_VERSION,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'normalized': normalized,
            'raw': raw,
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False)
        tmp_path.replace(self.path)

        logger.info(f"Saved snapshot with {len(normalized)} records to {self.path}")
        return data

    def load(self) -> Optional[Dict[str, Any]]:
        """Load the snapshot, or None if missing, unreadable or of another version."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable snapshot {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring snapshot {self.path}: not an object")
            return None

        version = data.get('version')
        if isinstance(version, bool) or version != SNAPSHOT_VERSION:
            logger.info(f"Ignoring snapshot {self.path}: unsupported version")
            return None

        if not _is_list_of_dicts(data.get('normalized', [])) or not _is_list_of_dicts(data.get('raw', [])):
            logger.warning(f"Ignoring snapshot {self.path}: malformed entries")
            return None

        return data

    def clear(self) -> None:
        """Remove the snapshot file."""
        if self.path.exists():
            self.path.unlink()


def _is_list_of_dicts(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


def format_timestamp(ts: Optional[str]) -> str:
    """
    Render an ISO timestamp as local 'YYYY-MM-DD HH:MM:SS'.

    Examples:
        >>> format_timestamp(None)
        '—'
        >>> format_timestamp('not a date')
        'not a date'
    """
    if not ts:
        return '—'
    try:
        dt = datetime.fromisoformat(ts)
    except (TypeError, ValueError):
        return ts
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime('%Y-%m-%d %H:%M:%S')
