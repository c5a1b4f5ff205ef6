#!/usr/bin/env python3
"""
Tests for the paginated fetcher and the dataset ingestor.

HTTP is replaced by a fake session that serves pages from a function of
(offset, limit).
"""

from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from config import DatasetSource
from ingest.data_taipei import Ingestor
from ingest.errors import NetworkError, ParseError
from ingest.fetcher import PaginatedFetcher, StopReason, append_params, build_proxy_url

URL = 'https://data.taipei/api/v1/dataset/abc?scope=resourceAquire'


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self.text is not None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """Serves responses from handler(offset, limit) and records requested URLs."""

    def __init__(self, handler):
        self.handler = handler
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        query = parse_qs(urlsplit(url).query)
        offset = int(query['offset'][0])
        limit = int(query['limit'][0])
        return self.handler(offset, limit)


def make_rows(start, count):
    return [{'_id': i, '路段': f'路段{i}'} for i in range(start, start + count)]


def envelope(rows, count=None):
    result = {'results': rows}
    if count is not None:
        result['count'] = count
    return FakeResponse({'result': result})


def paged_dataset(total, declare_count=False):
    """Handler for a well-behaved API holding `total` rows."""
    def handler(offset, limit):
        rows = make_rows(offset, max(0, min(limit, total - offset)))
        return envelope(rows, total if declare_count else None)
    return handler


def make_fetcher(handler, **kwargs):
    session = FakeSession(handler)
    return PaginatedFetcher(session=session, **kwargs), session


def test_full_pages_until_short_page():
    """Pages of exactly 1000 rows are concatenated until the short final page."""
    fetcher, session = make_fetcher(paged_dataset(2300))
    result = fetcher.fetch_all(URL)

    assert len(result.rows) == 2300
    assert [r['_id'] for r in result.rows] == list(range(2300))
    assert result.pages == 3
    assert result.stop_reason == StopReason.SHORT_PAGE
    assert len(session.urls) == 3


def test_declared_count_reached():
    fetcher, session = make_fetcher(paged_dataset(2000, declare_count=True))
    result = fetcher.fetch_all(URL)

    assert len(result.rows) == 2000
    assert result.stop_reason == StopReason.COUNT_REACHED
    assert len(session.urls) == 2


def test_api_ignoring_offset_small_page_terminates():
    """An API that always returns the same 5 rows stops after one request."""
    fetcher, session = make_fetcher(lambda offset, limit: envelope(make_rows(0, 5)))
    result = fetcher.fetch_all(URL)

    assert len(result.rows) == 5
    assert result.stop_reason == StopReason.SHORT_PAGE
    assert len(session.urls) == 1


def test_api_ignoring_offset_full_page_terminates():
    """A full page repeated regardless of offset stops via the no-growth guard."""
    fetcher, session = make_fetcher(lambda offset, limit: envelope(make_rows(0, 1000)))
    result = fetcher.fetch_all(URL)

    assert len(result.rows) == 1000
    assert result.stop_reason == StopReason.NO_GROWTH
    assert len(session.urls) == 2


def test_empty_page_stops():
    def handler(offset, limit):
        return envelope(make_rows(0, 1000) if offset == 0 else [])

    fetcher, session = make_fetcher(handler)
    result = fetcher.fetch_all(URL)

    assert len(result.rows) == 1000
    assert result.stop_reason == StopReason.EMPTY_PAGE
    assert len(session.urls) == 2


def test_safety_cap():
    """A server that never runs out of full pages is capped."""
    fetcher, session = make_fetcher(lambda offset, limit: envelope(make_rows(offset, limit)),
                                    max_pages=5)
    result = fetcher.fetch_all(URL)

    assert result.pages == 5
    assert len(result.rows) == 5000
    assert result.stop_reason == StopReason.SAFETY_CAP
    assert len(session.urls) == 5


def test_default_safety_cap_is_200_pages():
    fetcher, session = make_fetcher(lambda offset, limit: envelope(make_rows(offset, limit)),
                                    page_size=2)
    result = fetcher.fetch_all(URL)

    assert result.pages == 200
    assert result.stop_reason == StopReason.SAFETY_CAP


def test_offsets_advance_by_rows_received():
    fetcher, session = make_fetcher(paged_dataset(25), page_size=10)
    fetcher.fetch_all(URL)

    offsets = [int(parse_qs(urlsplit(u).query)['offset'][0]) for u in session.urls]
    assert offsets == [0, 10, 20]
    assert all('scope=resourceAquire' in u for u in session.urls)


def test_empty_first_page():
    fetcher, session = make_fetcher(lambda offset, limit: envelope([]))
    result = fetcher.fetch_all(URL)

    assert result.rows == []
    assert len(session.urls) == 1


def test_unrecognized_envelope_is_zero_rows():
    fetcher, session = make_fetcher(lambda offset, limit: FakeResponse({'result': {'message': 'x'}}))
    result = fetcher.fetch_all(URL)

    assert result.rows == []
    assert len(session.urls) == 1


def test_http_error_raises_network_error():
    fetcher, _ = make_fetcher(lambda offset, limit: FakeResponse(status_code=503))

    with pytest.raises(NetworkError) as exc_info:
        fetcher.fetch_all(URL)
    assert exc_info.value.status_code == 503
    assert str(exc_info.value) == 'HTTP 503'


def test_error_on_later_page_aborts_fetch():
    def handler(offset, limit):
        if offset == 0:
            return envelope(make_rows(0, 1000))
        return FakeResponse(status_code=500)

    fetcher, _ = make_fetcher(handler)
    with pytest.raises(NetworkError):
        fetcher.fetch_all(URL)


def test_transport_error_raises_network_error():
    def handler(offset, limit):
        raise requests.exceptions.ConnectionError("connection refused")

    fetcher, _ = make_fetcher(handler)
    with pytest.raises(NetworkError):
        fetcher.fetch_all(URL)


def test_malformed_json_raises_parse_error():
    fetcher, _ = make_fetcher(lambda offset, limit: FakeResponse(text='<html>'))
    with pytest.raises(ParseError):
        fetcher.fetch_all(URL)


def test_append_params_preserves_query():
    url = append_params(URL, {'limit': 1000, 'offset': 0})
    assert url == 'https://data.taipei/api/v1/dataset/abc?scope=resourceAquire&limit=1000&offset=0'


def test_append_params_overrides_existing():
    url = append_params('https://x/api?offset=5&limit=1', {'limit': 10, 'offset': 0})
    assert url == 'https://x/api?offset=0&limit=10'


def test_append_params_without_query():
    assert append_params('https://x/api', {'limit': 10}) == 'https://x/api?limit=10'


def test_proxy_url():
    assert build_proxy_url('https://x/api?a=1', None) == 'https://x/api?a=1'
    assert build_proxy_url('https://x/api?a=1', 'https://corsproxy.io/?') == \
        'https://corsproxy.io/?https%3A%2F%2Fx%2Fapi%3Fa%3D1'


def test_ingestor_writes_raw_rows(tmp_path):
    fetcher, _ = make_fetcher(paged_dataset(3))
    source = DatasetSource(id='third-lane', label='第3車道', url=URL, source_name='列表')
    ingestor = Ingestor(source, fetcher, data_dir=tmp_path, write_raw=True)

    result = ingestor.run()

    assert result['success']
    assert result['count'] == 3
    assert result['stop_reason'] == 'short_page'
    assert (tmp_path / 'sources' / 'third-lane' / 'raw' / 'rows.json').exists()
    manifest = ingestor.load_manifest()
    assert manifest['record_count'] == 3
    assert manifest['raw_files'] == ['rows.json']


def test_ingestor_in_memory_only(tmp_path):
    fetcher, _ = make_fetcher(paged_dataset(3))
    source = DatasetSource(id='third-lane', label='第3車道', url=URL)
    result = Ingestor(source, fetcher, data_dir=tmp_path).run()

    assert result['success']
    assert not (tmp_path / 'sources').exists()


def test_ingestor_reports_failure():
    fetcher, _ = make_fetcher(lambda offset, limit: FakeResponse(status_code=404))
    source = DatasetSource(id='missing', label='missing', url=URL)
    result = Ingestor(source, fetcher).run()

    assert not result['success']
    assert result['message'] == 'HTTP 404'
    assert isinstance(result['error'], NetworkError)


def test_ingestor_reports_unwritable_raw_dir(tmp_path):
    (tmp_path / 'sources').write_text('not a directory')
    fetcher, _ = make_fetcher(paged_dataset(3))
    source = DatasetSource(id='third-lane', label='第3車道', url=URL)

    result = Ingestor(source, fetcher, data_dir=tmp_path, write_raw=True).run()

    assert not result['success']
    assert isinstance(result['error'], OSError)
    assert result['rows'] == []
