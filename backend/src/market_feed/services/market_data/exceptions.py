"""
Custom exceptions for the market data aggregation layer.

These never cross an adapter boundary: adapters log them and return an
empty result instead.
"""

from typing import Optional


class MarketDataException(Exception):
    """Base exception for market data sources."""

    pass


class TransientUpstreamError(MarketDataException):
    """Raised for timeouts, resets, DNS and other network-level failures."""

    def __init__(self, endpoint: str, original_error: Exception):
        """
        Initialize TransientUpstreamError.

        Args:
            endpoint: Base URL that failed
            original_error: The underlying transport error
        """
        self.endpoint = endpoint
        self.original_error = original_error
        super().__init__(f"{endpoint}: {type(original_error).__name__}: {original_error}")


class UpstreamRequestError(MarketDataException):
    """Raised when an upstream rejects the request (HTTP status, bad payload)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        """
        Initialize UpstreamRequestError.

        Args:
            message: Description of the failure
            status_code: HTTP status code, when there was one
        """
        self.status_code = status_code
        super().__init__(message)


class UpstreamUnavailableError(MarketDataException):
    """Raised when every endpoint failed transiently on every attempt."""

    def __init__(self, endpoint_count: int, attempts: int, last_error: Optional[Exception]):
        """
        Initialize UpstreamUnavailableError.

        Args:
            endpoint_count: Number of endpoints tried per attempt
            attempts: Number of rounds performed
            last_error: The last error observed
        """
        self.endpoint_count = endpoint_count
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"All {endpoint_count} endpoints failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


class SubgraphQueryError(MarketDataException):
    """Raised when a GraphQL reply carries errors or no data."""

    pass


class InvalidCandleDataError(MarketDataException):
    """Raised when a raw bar cannot be normalized into a Candle."""

    def __init__(self, message: str, raw: object = None):
        self.raw = raw
        super().__init__(f"Invalid candle data: {message}")
