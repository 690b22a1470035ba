"""
Test configuration and fixtures.

Provides common fixtures and setup for all tests.
"""

import os
import tempfile

import pytest

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="market-feed-logs-"))

from market_feed.core.config import TestingConfig

from helpers import FakeClock


@pytest.fixture
def clock():
    """Create a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def test_settings():
    """Testing configuration with a Moralis key and no environment overrides."""
    return TestingConfig(MORALIS_API_KEY="test-moralis-key", BINANCE_API_BASE=None)
