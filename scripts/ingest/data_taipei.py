#!/usr/bin/env python3
"""
data.taipei dataset ingestor.

Downloads every row of one dataset through the paginated fetcher and
optionally keeps a raw copy under data/sources/{id}/raw/rows.json.
"""

import json
import logging
from typing import Dict

from config import DatasetSource

from .base import BaseIngestor
from .fetcher import PaginatedFetcher

logger = logging.getLogger(__name__)


class Ingestor(BaseIngestor):
    """Ingestor for a single data.taipei dataset."""

    RAW_FILE = 'rows.json'

    def __init__(self, source: DatasetSource, fetcher: PaginatedFetcher, **kwargs):
        super().__init__(source.id, **kwargs)
        self.source = source
        self.fetcher = fetcher

    def ingest(self) -> Dict:
        """Fetch all rows for the dataset."""
        result = self.fetcher.fetch_all(self.source.url)

        files = []
        if self.write_raw:
            output_file = self.raw_dir / self.RAW_FILE
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(result.rows, f, ensure_ascii=False)
            files.append(self.RAW_FILE)

        return {
            'success': True,
            'rows': result.rows,
            'files': files,
            'count': len(result.rows),
            'pages': result.pages,
            'stop_reason': result.stop_reason.value if result.stop_reason else None,
            'message': f"Downloaded {len(result.rows)} rows for {self.source.label}",
        }
