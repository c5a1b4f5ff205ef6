#!/usr/bin/env python3
"""
Main pipeline orchestrator.

Runs one load cycle:
1. Cache - Reuse the last snapshot unless a refresh is forced
2. Ingest - Fetch every page of each dataset, one dataset at a time
3. Normalize - Convert raw rows to the common record schema
4. Save - Write a versioned snapshot for the next run

A dataset that fails to load is logged and skipped; the load only fails
when no dataset produced any record.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import DEFAULT_DATA_DIR, ConfigError, DatasetSource, Settings, load_config
from filters import FilterCriteria, apply_filters, filter_options
from ingest.data_taipei import Ingestor
from ingest.fetcher import PaginatedFetcher
from normalize.records import NormalizedRecord, normalize_rows
from snapshot import SnapshotCache, format_timestamp

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """Every dataset failed to produce records."""


@dataclass
class RawCapture:
    """Raw rows of one dataset, kept for inspection."""
    id: str
    label: str
    source: str
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'label': self.label, 'source': self.source, 'rows': self.rows}


@dataclass
class LoadSession:
    """Result of one load cycle, handed to the filter and display layers."""
    records: List[NormalizedRecord] = field(default_factory=list)
    raw: List[RawCapture] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    timestamp: Optional[str] = None
    from_cache: bool = False

    def status_message(self, dataset_count: int) -> str:
        if self.from_cache:
            return f"已載入快取（共 {len(self.records)} 筆）"
        return f"載入完成（共 {len(self.records)} 筆，{dataset_count} 組資料）"


def build_fetcher(settings: Settings, use_proxy: Optional[bool] = None) -> PaginatedFetcher:
    """Create a fetcher from settings; use_proxy overrides the configured flag."""
    if use_proxy is None:
        use_proxy = settings.use_proxy
    return PaginatedFetcher(
        page_size=settings.page_size,
        max_pages=settings.max_pages,
        timeout=settings.timeout,
        proxy_base=settings.proxy_base if use_proxy else None,
    )


def session_from_snapshot(snapshot: Dict[str, Any]) -> LoadSession:
    """Rebuild a load session from a cached snapshot."""
    records = [NormalizedRecord.from_dict(r) for r in snapshot.get('normalized') or []]
    raw = [
        RawCapture(id=r.get('id', ''), label=r.get('label', ''),
                   source=r.get('source', ''), rows=r.get('rows') or [])
        for r in snapshot.get('raw') or []
        if isinstance(r, dict)
    ]
    return LoadSession(records=records, raw=raw, timestamp=snapshot.get('timestamp'),
                       from_cache=True)


def load_all(datasets: List[DatasetSource], fetcher: PaginatedFetcher,
             cache: Optional[SnapshotCache] = None, force_refresh: bool = False,
             data_dir: Optional[Path] = None, write_raw: bool = False) -> LoadSession:
    """
    Load and normalize every dataset.

    Args:
        datasets: Dataset sources, fetched in order
        fetcher: Paginated fetcher used for all datasets
        cache: Snapshot cache (None disables caching)
        force_refresh: Ignore an existing snapshot
        data_dir: Base data directory for raw captures
        write_raw: Save raw rows under data/sources/{id}/raw/

    Returns:
        LoadSession with records, raw captures and per-dataset errors.
        The timestamp stays None when the snapshot could not be written.

    Raises:
        LoadError: if no dataset produced any record and one failed
    """
    if cache is not None and not force_refresh:
        cached = cache.load()
        if cached and isinstance(cached.get('normalized'), list) and cached['normalized']:
            try:
                session = session_from_snapshot(cached)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring unusable snapshot: {e}")
            else:
                logger.info(f"Using cached snapshot from {session.timestamp} ({len(session.records)} records)")
                return session

    session = LoadSession()
    last_error = None

    for source in datasets:
        ingestor = Ingestor(source, fetcher, data_dir=data_dir, write_raw=write_raw)
        result = ingestor.run()

        if not result['success']:
            last_error = result['message']
            session.errors[source.id] = result['message']
            continue

        rows = result['rows']
        session.raw.append(RawCapture(id=source.id, label=source.label,
                                      source=source.source_name, rows=rows))
        session.records.extend(normalize_rows(source.label, source.source_name, rows))

    if not session.records and last_error is not None:
        raise LoadError(last_error)

    if cache is not None:
        try:
            snapshot = cache.save([r.to_dict() for r in session.records],
                                  [c.to_dict() for c in session.raw])
        except OSError as e:
            logger.warning(f"Could not save snapshot to {cache.path}: {e}")
        else:
            session.timestamp = snapshot['timestamp']

    logger.info(f"Loaded {len(session.records)} records from {len(session.raw)} datasets")
    return session


def format_table(records: List[NormalizedRecord], limit: Optional[int] = None) -> str:
    """Plain text table of category, district, location and year."""
    shown = records if limit is None else records[:limit]
    header = ('管制類別', '行政區', '地點/路段', '實施年份')
    lines = [' | '.join(header), '-' * 60]
    for r in shown:
        lines.append(' | '.join((r.category, r.district_display, r.location, r.year_display)))
    if limit is not None and len(records) > limit:
        lines.append(f"... and {len(records) - limit} more")
    return '\n'.join(lines)


def print_options(options: Dict[str, List]) -> None:
    """Print the available filter values."""
    print("\nCategories:")
    for c in options['categories']:
        print(f"  {c}")
    print("\nDistricts:")
    for d in options['districts']:
        print(f"  {d}")
    print("\nYears:")
    for y in options['years']:
        print(f"  {y['value']:20s} {y['label']}")


def main():
    parser = argparse.ArgumentParser(
        description='Load Taipei motorcycle traffic rule datasets and show a filtered table',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python pipeline.py                          # Load (cached if available) and print all rows
  python pipeline.py --force-refresh          # Ignore the snapshot and fetch again
  python pipeline.py --district 大安區 --year year_2012
  python pipeline.py --search 基隆路 --limit 20
  python pipeline.py --options                # List filter values
  python pipeline.py -s third-lane --write-raw  # Fetch one dataset, keep raw rows
"""
    )

    parser.add_argument('--config', '-c', type=Path, default=None,
                        help='YAML config file (default: config/datasets.yaml)')
    parser.add_argument('--data-dir', '-d', type=Path, default=DEFAULT_DATA_DIR,
                        help='Base data directory')
    parser.add_argument('--sources', '-s', type=str, nargs='+',
                        help='Dataset IDs to load (default: all)')
    parser.add_argument('--force-refresh', '-r', action='store_true',
                        help='Fetch again even if a snapshot exists')
    parser.add_argument('--proxy', dest='use_proxy', action='store_true', default=None,
                        help='Route requests through the configured proxy')
    parser.add_argument('--no-proxy', dest='use_proxy', action='store_false',
                        help='Request datasets directly')
    parser.add_argument('--no-cache', action='store_true',
                        help='Neither read nor write the snapshot')
    parser.add_argument('--write-raw', action='store_true',
                        help='Save raw rows under data/sources/{id}/raw/')
    parser.add_argument('--category', type=str, help='Filter by dataset label')
    parser.add_argument('--district', type=str, help='Filter by district, e.g. 大安區')
    parser.add_argument('--year', type=str,
                        help='Filter by year period: before2009, year_<N>, unknownFrom2009')
    parser.add_argument('--search', '-q', type=str, help='Search location and district text')
    parser.add_argument('--options', action='store_true', help='List filter values and exit')
    parser.add_argument('--limit', '-n', type=int, default=None, help='Rows to print')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(2)

    datasets = config.datasets
    if args.sources:
        datasets = [d for d in datasets if d.id in args.sources]
        unknown = set(args.sources) - {d.id for d in datasets}
        if unknown:
            logger.warning(f"Unknown dataset IDs: {', '.join(sorted(unknown))}")

    cache = None
    if not args.no_cache:
        cache = SnapshotCache(config.settings.resolve_cache_path())

    fetcher = build_fetcher(config.settings, args.use_proxy)

    print("資料載入中...")
    try:
        session = load_all(datasets, fetcher, cache=cache, force_refresh=args.force_refresh,
                           data_dir=args.data_dir, write_raw=args.write_raw)
    except LoadError as e:
        print(f"載入失敗：{e}。請稍後再試或開啟 CORS Proxy 後重試。")
        sys.exit(1)

    print(session.status_message(len(datasets)))
    print(f"資料時間：{format_timestamp(session.timestamp)}")

    if args.options:
        print_options(filter_options(session.records, config.datasets))
        return

    criteria = FilterCriteria.from_args(args.category, args.district, args.year, args.search)
    rows = apply_filters(session.records, criteria)

    print(f"\n共 {len(rows)} 筆\n")
    print(format_table(rows, args.limit))


if __name__ == '__main__':
    main()
