#!/usr/bin/env python3
"""
Paginated fetcher for the data.taipei open-data API.

Requests pages with limit/offset query parameters until one of the stop
conditions holds. The API does not guarantee that it honours offset, so
the loop guards against servers that return the same page forever.

API Documentation: https://data.taipei/api-docs
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import requests

from constants import MAX_PAGES, PAGE_SIZE, REQUEST_TIMEOUT

from .envelope import Page, unwrap_envelope
from .errors import EmptyEnvelopeError, NetworkError, ParseError

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    """Why pagination ended."""
    COUNT_REACHED = "count_reached"
    SAFETY_CAP = "safety_cap"
    SHORT_PAGE = "short_page"
    EMPTY_PAGE = "empty_page"
    NO_GROWTH = "no_growth"


@dataclass
class FetchResult:
    """All rows of a dataset and how the fetch ended."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    pages: int = 0
    stop_reason: Optional[StopReason] = None


def append_params(url: str, params: Dict[str, Any]) -> str:
    """
    Merge query parameters into a URL, keeping its existing query string.

    Examples:
        >>> append_params('https://x/api?scope=a', {'limit': 10, 'offset': 0})
        'https://x/api?scope=a&limit=10&offset=0'
        >>> append_params('https://x/api?offset=5', {'offset': 0})
        'https://x/api?offset=0'
    """
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for key, value in params.items():
        query[key] = str(value)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def build_proxy_url(url: str, proxy_base: Optional[str]) -> str:
    """Route a URL through a prefix proxy such as https://corsproxy.io/?"""
    if not proxy_base:
        return url
    return proxy_base + quote(url, safe='')


class PaginatedFetcher:
    """Fetches every page of a dataset endpoint."""

    USER_AGENT = 'TaipeiMotoRules/1.0'

    def __init__(self, page_size: int = PAGE_SIZE, max_pages: int = MAX_PAGES,
                 timeout: int = REQUEST_TIMEOUT, proxy_base: Optional[str] = None,
                 session=None):
        self.page_size = page_size
        self.max_pages = max_pages
        self.timeout = timeout
        self.proxy_base = proxy_base

        if session is None:
            session = requests.Session()
            session.headers.update({
                'Accept': 'application/json',
                'User-Agent': self.USER_AGENT,
                'Cache-Control': 'no-cache',
            })
        self.session = session

    def page_url(self, url: str, offset: int) -> str:
        """URL for the page starting at offset."""
        paged = append_params(url, {'limit': self.page_size, 'offset': offset})
        return build_proxy_url(paged, self.proxy_base)

    def fetch_page(self, url: str, offset: int) -> Page:
        """
        Fetch and unwrap one page.

        Raises:
            NetworkError: on transport failure or non-success status
            ParseError: if the body is not JSON
        """
        page_url = self.page_url(url, offset)
        logger.debug(f"Requesting: {page_url}")

        try:
            response = self.session.get(page_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}", url=page_url) from e

        if not response.ok:
            raise NetworkError(f"HTTP {response.status_code}",
                               status_code=response.status_code, url=page_url)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Malformed JSON from {page_url}: {e}") from e

        try:
            return unwrap_envelope(payload)
        except EmptyEnvelopeError as e:
            logger.warning(f"Treating page at offset {offset} as empty: {e}")
            return Page()

    def _check_stop(self, fetched: int, total: Optional[int], pages: int,
                    first_len: int, last_len: int, grew: bool) -> Optional[StopReason]:
        if total is not None and fetched >= total:
            return StopReason.COUNT_REACHED
        if pages >= self.max_pages:
            return StopReason.SAFETY_CAP
        if first_len < self.page_size:
            return StopReason.SHORT_PAGE
        if last_len == 0:
            return StopReason.EMPTY_PAGE
        if not grew:
            return StopReason.NO_GROWTH
        if last_len < self.page_size:
            return StopReason.SHORT_PAGE
        return None

    def fetch_all(self, url: str) -> FetchResult:
        """
        Fetch every page of a dataset.

        Args:
            url: Dataset endpoint, possibly with its own query string

        Returns:
            FetchResult with the concatenated rows, number of requests
            issued, and the stop reason
        """
        first = self.fetch_page(url, 0)
        rows = list(first.rows)
        total = first.count
        pages = 1
        previous = first.rows

        reason = self._check_stop(len(rows), total, pages, len(first.rows),
                                  len(first.rows), grew=True)

        while reason is None:
            page = self.fetch_page(url, len(rows))
            pages += 1

            # A repeat of the previous page means the API ignored offset
            grew = bool(page.rows) and page.rows != previous
            if grew:
                rows.extend(page.rows)
                previous = page.rows

            logger.debug(f"  Page {pages}: {len(page.rows)} rows, {len(rows)} total")
            reason = self._check_stop(len(rows), total, pages, len(first.rows),
                                      len(page.rows), grew)

        logger.info(f"Fetched {len(rows)} rows in {pages} page(s), stopped: {reason.value}")
        return FetchResult(rows=rows, pages=pages, stop_reason=reason)
