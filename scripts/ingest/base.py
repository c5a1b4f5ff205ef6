#!/usr/bin/env python3
"""
Base class for data ingestion.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from config import DEFAULT_DATA_DIR

logger = logging.getLogger(__name__)


class BaseIngestor(ABC):
    """Base class for dataset ingestors."""

    def __init__(self, source_id: str, data_dir: Optional[Path] = None,
                 write_raw: bool = False):
        self.source_id = source_id
        self.write_raw = write_raw
        self.data_dir = data_dir or DEFAULT_DATA_DIR
        self.source_dir = self.data_dir / 'sources' / source_id
        self.raw_dir = self.source_dir / 'raw'
        self.manifest_path = self.source_dir / 'manifest.json'

    def load_manifest(self) -> Dict:
        """Load the source manifest."""
        if self.manifest_path.exists():
            with open(self.manifest_path, encoding='utf-8') as f:
                return json.load(f)
        return {}

    def save_manifest(self, manifest: Dict) -> None:
        """Save the source manifest."""
        with open(self.manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, indent=2, ensure_ascii=False)

    def update_manifest(self, raw_files: List[str], record_count: int,
                        stop_reason: Optional[str] = None,
                        notes: Optional[str] = None) -> None:
        """Update manifest after ingestion."""
        manifest = self.load_manifest()
        manifest.update({
            'source_id': self.source_id,
            'ingested_at': datetime.now(timezone.utc).isoformat(),
            'raw_files': raw_files,
            'record_count': record_count,
        })
        if stop_reason:
            manifest['stop_reason'] = stop_reason
        if notes:
            manifest['notes'] = notes
        self.save_manifest(manifest)

    @abstractmethod
    def ingest(self) -> Dict:
        """
        Perform the ingestion.

        Returns:
            Dict with keys:
                - success: bool
                - rows: List[Dict] - raw rows fetched
                - files: List[str] - raw files created
                - count: int - number of records
                - message: str - status message
        """
        pass

    def run(self) -> Dict:
        """
        Run the ingestion and update manifest.

        Errors are logged and reported in the result, never raised, so a
        failing dataset does not stop the others. This includes failures
        writing raw files or the manifest.
        """
        logger.info(f"Ingesting {self.source_id}...")

        try:
            if self.write_raw:
                self.raw_dir.mkdir(parents=True, exist_ok=True)
            result = self.ingest()
            if result['success'] and self.write_raw:
                self.update_manifest(
                    raw_files=result.get('files', []),
                    record_count=result.get('count', 0),
                    stop_reason=result.get('stop_reason'),
                    notes=result.get('notes'),
                )
        except Exception as e:
            logger.error(f"  Ingest error for {self.source_id}: {e}")
            return {
                'success': False,
                'rows': [],
                'count': 0,
                'error': e,
                'message': str(e),
            }

        if result['success']:
            logger.info(f"  Success: {result['message']}")
        else:
            logger.warning(f"  Failed: {result['message']}")

        return result
