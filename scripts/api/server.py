#!/usr/bin/env python3
"""
Flask API server for the filterable traffic rules table.

Endpoints:
    GET  /api/records             - Filtered records (?category=&district=&year=&q=)
    GET  /api/records/<i>/raw     - Raw source row of a record
    GET  /api/options             - Values for the filter controls
    GET  /api/status              - Record count and snapshot time
    POST /api/reload              - Fetch all datasets again

Run with: python scripts/api/server.py
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import DatasetSource, load_config  # noqa: E402
from filters import FilterCriteria, apply_filters, filter_options  # noqa: E402
from ingest.fetcher import PaginatedFetcher  # noqa: E402
from pipeline import LoadError, LoadSession, build_fetcher, load_all  # noqa: E402
from snapshot import SnapshotCache  # noqa: E402

logger = logging.getLogger(__name__)


class RecordStore:
    """Holds the current load session; a reload swaps it wholesale."""

    def __init__(self, datasets: List[DatasetSource], fetcher: PaginatedFetcher,
                 cache: Optional[SnapshotCache] = None):
        self.datasets = datasets
        self.fetcher = fetcher
        self.cache = cache
        self.session: Optional[LoadSession] = None

    def get(self) -> LoadSession:
        if self.session is None:
            self.session = load_all(self.datasets, self.fetcher, cache=self.cache)
        return self.session

    def reload(self) -> LoadSession:
        session = load_all(self.datasets, self.fetcher, cache=self.cache, force_refresh=True)
        self.session = session
        return session


def create_app(datasets: List[DatasetSource], fetcher: PaginatedFetcher,
               cache: Optional[SnapshotCache] = None) -> Flask:
    """Create the Flask app serving records for the given datasets."""
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all origins
    app.json.ensure_ascii = False

    store = RecordStore(datasets, fetcher, cache)
    app.config['RECORD_STORE'] = store

    @app.errorhandler(LoadError)
    def handle_load_error(e):
        logger.error(f"Load failed: {e}")
        return jsonify({"error": str(e)}), 502

    @app.route('/api/records', methods=['GET'])
    def get_records():
        """
        Get records matching the filters.

        Query parameters:
            category: Dataset label
            district: District name, e.g. 大安區
            year: Year period (before2009, year_<N>, unknownFrom2009)
            q: Text searched in location and district

        Returns:
            {"count": N, "records": [...]}
        """
        session = store.get()
        criteria = FilterCriteria.from_args(
            request.args.get('category'),
            request.args.get('district'),
            request.args.get('year'),
            request.args.get('q'),
        )
        rows = apply_filters(session.records, criteria)
        return jsonify({
            "count": len(rows),
            "records": [r.to_dict() for r in rows],
        }), 200

    @app.route('/api/records/<int:index>/raw', methods=['GET'])
    def get_raw_record(index: int):
        """Get the raw source row behind a record."""
        session = store.get()
        if index < 0 or index >= len(session.records):
            return jsonify({"error": f"No record at index {index}"}), 404
        return jsonify(session.records[index].raw), 200

    @app.route('/api/options', methods=['GET'])
    def get_options():
        """Get category, district and year filter options."""
        session = store.get()
        return jsonify(filter_options(session.records, store.datasets)), 200

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Get load status."""
        session = store.get()
        return jsonify({
            "count": len(session.records),
            "datasets": len(store.datasets),
            "timestamp": session.timestamp,
            "fromCache": session.from_cache,
            "errors": session.errors,
            "message": session.status_message(len(store.datasets)),
        }), 200

    @app.route('/api/reload', methods=['POST'])
    def reload_records():
        """Fetch every dataset again, bypassing the snapshot."""
        session = store.reload()
        return jsonify({
            "count": len(session.records),
            "timestamp": session.timestamp,
            "errors": session.errors,
            "message": session.status_message(len(store.datasets)),
        }), 200

    return app


def create_default_app() -> Flask:
    """Create the app from config/datasets.yaml. Nothing is fetched until the first request."""
    config = load_config()
    return create_app(
        config.datasets,
        build_fetcher(config.settings),
        SnapshotCache(config.settings.resolve_cache_path()),
    )


app = create_default_app()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.run(host='127.0.0.1', port=5000)


if __name__ == '__main__':
    main()
