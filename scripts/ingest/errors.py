"""
Errors raised while fetching datasets.
"""


class TrafficDataError(Exception):
    """Base class for dataset fetch errors."""


class NetworkError(TrafficDataError):
    """Transport failure or non-success HTTP status."""

    def __init__(self, message: str, status_code: int = None, url: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ParseError(TrafficDataError):
    """Response body is not valid JSON."""


class EmptyEnvelopeError(TrafficDataError):
    """Response JSON has no recognizable result wrapper or row array."""
