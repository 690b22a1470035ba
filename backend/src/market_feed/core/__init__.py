"""
Core module containing configuration, logging, exceptions, and the token registry.
"""

from .config import (
    BaseConfig,
    DevelopmentConfig,
    ProductionConfig,
    SubgraphEndpoint,
    TestingConfig,
    config,
    get_config,
)
from .exceptions import (
    ConfigurationError,
    MarketFeedException,
    ResourceNotFoundError,
    UpstreamError,
    ValidationError,
    to_http_exception,
)
from .logging import JSONFormatter, SensitiveDataFilter, get_logger, setup_logging

__all__ = [
    # Configuration
    "BaseConfig",
    "DevelopmentConfig",
    "TestingConfig",
    "ProductionConfig",
    "SubgraphEndpoint",
    "get_config",
    "config",
    # Exceptions
    "MarketFeedException",
    "ResourceNotFoundError",
    "ValidationError",
    "UpstreamError",
    "ConfigurationError",
    "to_http_exception",
    # Logging
    "setup_logging",
    "get_logger",
    "JSONFormatter",
    "SensitiveDataFilter",
]
