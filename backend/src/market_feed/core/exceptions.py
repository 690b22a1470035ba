"""
Custom exception classes for the market feed service.

Provides application-level exceptions and their HTTP mapping.
"""

from fastapi import HTTPException, status


class MarketFeedException(Exception):
    """Base exception for the market feed service."""

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class ResourceNotFoundError(MarketFeedException):
    """Raised when a resource is not found."""

    def __init__(self, resource: str, resource_id: int | str):
        message = f"{resource} with id {resource_id} not found"
        super().__init__(message, "RESOURCE_NOT_FOUND")


class ValidationError(MarketFeedException):
    """Raised when validation fails."""

    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR")


class UpstreamError(MarketFeedException):
    """Raised when an upstream data provider cannot be reached."""

    def __init__(self, message: str, status_code: int = 502):
        self.status_code = status_code
        super().__init__(message, "UPSTREAM_ERROR" if status_code != 504 else "UPSTREAM_TIMEOUT")


class ConfigurationError(MarketFeedException):
    """Raised when required configuration (e.g. an API key) is missing."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


# HTTP Exception converters
def to_http_exception(exc: MarketFeedException) -> HTTPException:
    """Convert MarketFeedException to HTTPException."""
    status_code_map = {
        "RESOURCE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "UPSTREAM_ERROR": status.HTTP_502_BAD_GATEWAY,
        "UPSTREAM_TIMEOUT": status.HTTP_504_GATEWAY_TIMEOUT,
        "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    }

    status_code = status_code_map.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail={
            "error": exc.code,
            "message": exc.message,
        },
    )
