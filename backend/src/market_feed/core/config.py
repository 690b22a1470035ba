"""
Configuration management for the market feed service.

Supports multiple environments (development, testing, production) with
environment-specific settings and per-chain upstream configuration.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from .price_feeds import DEFAULT_SUBGRAPH_ENDPOINTS


class SubgraphEndpoint(BaseModel):
    """A GraphQL liquidity-pool indexer endpoint."""

    dex: str
    url: str


class BaseConfig(BaseSettings):
    """Base configuration with common settings for all environments."""

    # Application
    APP_NAME: str = "Market Feed"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", description="Environment: development, testing, production")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # API Server
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=3001, description="API server port")
    CORS_ORIGINS: str = Field(default="http://localhost:3000", description="CORS allowed origins (comma-separated)")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL")
    LOG_FORMAT: str = Field(default="json", description="Log format: json or text")
    LOG_DIR: str = Field(default="logs", description="Directory for log files")

    # Binance (centralized exchange) configuration
    BINANCE_API_BASE: Optional[str] = Field(default=None, description="Primary Binance endpoint, tried before the built-in fallbacks")
    BINANCE_MAX_RETRIES: int = Field(default=3, description="Rounds over all Binance endpoints before giving up")
    BINANCE_RETRY_BASE_DELAY: float = Field(default=0.5, description="Base back-off delay in seconds")
    BINANCE_REQUEST_TIMEOUT: float = Field(default=8.0, description="Per-request timeout in seconds")

    # Moralis (on-chain token/price/OHLCV) configuration
    MORALIS_API_KEY: Optional[str] = Field(default=None, description="Moralis API key")
    MORALIS_BASE_URL: str = Field(default="https://deep-index.moralis.io/api/v2.2", description="Moralis base URL")
    MORALIS_REQUEST_TIMEOUT: float = Field(default=10.0, description="Per-request timeout in seconds")

    # OKX DEX market configuration
    OKX_BASE_URL: str = Field(default="https://web3.okx.com/api/v6/dex/market", description="OKX DEX market base URL")
    OKX_REQUEST_TIMEOUT: float = Field(default=10.0, description="Per-request timeout in seconds")

    # Subgraph (liquidity-pool indexer) configuration
    SUBGRAPH_ENDPOINTS: Dict[int, List[SubgraphEndpoint]] = Field(
        default_factory=lambda: {
            chain_id: [SubgraphEndpoint(**endpoint) for endpoint in endpoints]
            for chain_id, endpoints in DEFAULT_SUBGRAPH_ENDPOINTS.items()
        },
        description="Indexer endpoints per chain, in priority order",
    )
    SUBGRAPH_REQUEST_TIMEOUT: float = Field(default=15.0, description="Per-request timeout in seconds")

    # Source selection
    ONCHAIN_SOURCES: str = Field(default="moralis,okx,subgraph", description="On-chain sources in preference order (comma-separated)")

    # Caching
    CACHE_MAX_ENTRIES: int = Field(default=10000, description="Maximum entries per cache instance")
    CACHE_COALESCE: bool = Field(default=True, description="Share one upstream call between concurrent identical requests")
    PAIR_CACHE_TTL: int = Field(default=30 * 60, description="Pair discovery TTL in seconds")
    PAIR_NEGATIVE_CACHE_TTL: int = Field(default=5 * 60, description="TTL for failed pair discovery in seconds")
    TOKEN_INFO_CACHE_TTL: int = Field(default=24 * 60 * 60, description="Token metadata TTL in seconds")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def onchain_sources_list(self) -> List[str]:
        """Parse on-chain source preference from comma-separated string."""
        return [name.strip().lower() for name in self.ONCHAIN_SOURCES.split(",") if name.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


class DevelopmentConfig(BaseConfig):
    """Development environment configuration."""

    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    LOG_FORMAT: str = "text"


class TestingConfig(BaseConfig):
    """Testing environment configuration."""

    ENVIRONMENT: str = "testing"
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"
    API_PORT: int = 8000
    BINANCE_RETRY_BASE_DELAY: float = 0.0


class ProductionConfig(BaseConfig):
    """Production environment configuration."""

    ENVIRONMENT: str = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"


def get_config() -> BaseConfig:
    """
    Get configuration based on ENVIRONMENT variable.

    Returns:
        BaseConfig: Configuration object for the current environment
    """
    import os

    environment = os.getenv("ENVIRONMENT", "development").lower()

    config_map = {
        "development": DevelopmentConfig,
        "testing": TestingConfig,
        "production": ProductionConfig,
    }

    config_class = config_map.get(environment, DevelopmentConfig)
    return config_class()


# Global configuration instance
config = get_config()
