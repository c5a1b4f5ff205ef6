#!/usr/bin/env python3
"""
Tests for the Flask records API.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import DatasetSource, load_config  # noqa: E402
from ingest.errors import NetworkError  # noqa: E402
from ingest.fetcher import FetchResult, StopReason  # noqa: E402
from server import app as default_app, create_app  # noqa: E402

DATASETS = [
    DatasetSource(id='third-lane', label='第3車道', url='https://example.org/a', source_name='列表A'),
    DatasetSource(id='two-stage', label='兩段式左轉', url='https://example.org/b', source_name='列表B'),
]


class FakeFetcher:
    def __init__(self, responses):
        self.responses = responses
        self.calls = 0

    def fetch_all(self, url):
        self.calls += 1
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return FetchResult(rows=response, pages=1, stop_reason=StopReason.SHORT_PAGE)


def create_sample_responses():
    return {
        'https://example.org/a': [
            {'行政區': '大安區', '路段': '基隆路一段', '年份': '101年'},
            {'行政區': '信義區', '路段': '松仁路', '年份': '97年以前'},
        ],
        'https://example.org/b': [
            {'行政區別': '中山區', '路口': '民權東路/松江路', '年份': '99年'},
        ],
    }


def make_client(responses=None):
    fetcher = FakeFetcher(responses or create_sample_responses())
    app = create_app(DATASETS, fetcher)
    app.config['TESTING'] = True
    return app.test_client(), fetcher


def test_get_all_records():
    client, _ = make_client()
    response = client.get('/api/records')

    assert response.status_code == 200
    data = response.get_json()
    assert data['count'] == 3
    assert data['records'][0]['district'] == '大安區'
    assert data['records'][0]['yearPeriod'] == 'year_2012'


def test_filtered_records():
    client, _ = make_client()

    data = client.get('/api/records', query_string={'district': '信義區'}).get_json()
    assert data['count'] == 1
    assert data['records'][0]['location'] == '松仁路'

    data = client.get('/api/records', query_string={'category': '兩段式左轉', 'year': 'year_2010'}).get_json()
    assert data['count'] == 1

    data = client.get('/api/records', query_string={'q': '基隆'}).get_json()
    assert data['count'] == 1


def test_raw_record():
    client, _ = make_client()
    response = client.get('/api/records/1/raw')
    assert response.status_code == 200
    assert response.get_json() == {'行政區': '信義區', '路段': '松仁路', '年份': '97年以前'}

    assert client.get('/api/records/99/raw').status_code == 404


def test_options():
    client, _ = make_client()
    data = client.get('/api/options').get_json()

    assert data['categories'] == ['第3車道', '兩段式左轉']
    assert '大安區' in data['districts']
    assert [y['value'] for y in data['years']] == ['before2009', 'year_2010', 'year_2012']


def test_records_loaded_once():
    client, fetcher = make_client()
    client.get('/api/records')
    client.get('/api/options')
    assert fetcher.calls == 2


def test_reload_fetches_again():
    client, fetcher = make_client()
    client.get('/api/status')

    response = client.post('/api/reload')
    assert response.status_code == 200
    assert response.get_json()['count'] == 3
    assert fetcher.calls == 4


def test_status_reports_partial_failure():
    responses = create_sample_responses()
    responses['https://example.org/b'] = NetworkError('HTTP 500')
    client, _ = make_client(responses)

    data = client.get('/api/status').get_json()
    assert data['count'] == 2
    assert data['errors'] == {'two-stage': 'HTTP 500'}
    assert data['fromCache'] is False


def test_total_failure_is_502():
    responses = {url: NetworkError('HTTP 503') for url in create_sample_responses()}
    client, _ = make_client(responses)

    response = client.get('/api/records')
    assert response.status_code == 502
    assert response.get_json() == {'error': 'HTTP 503'}


def test_module_app_uses_project_config():
    store = default_app.config['RECORD_STORE']

    assert store.datasets == load_config().datasets
    assert store.session is None
    rules = {rule.rule for rule in default_app.url_map.iter_rules()}
    assert {'/api/records', '/api/options', '/api/status', '/api/reload'} <= rules
