"""
K-line schemas shared by every data source.

The response shape is uniform regardless of which upstream answered.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.config import SubgraphEndpoint
from ..core.price_feeds import is_supported_chain

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"


class KlineInterval(str, Enum):
    """Canonical candle resolutions exposed to callers (Binance naming)."""

    M1 = "1m"
    M3 = "3m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    H6 = "6h"
    H8 = "8h"
    H12 = "12h"
    D1 = "1d"
    D3 = "3d"
    W1 = "1w"
    MN1 = "1M"

    @property
    def seconds(self) -> int:
        """Bucket width in seconds; a month counts as 30 days."""
        return INTERVAL_SECONDS[self]


INTERVAL_SECONDS = {
    KlineInterval.M1: 60,
    KlineInterval.M3: 3 * 60,
    KlineInterval.M5: 5 * 60,
    KlineInterval.M15: 15 * 60,
    KlineInterval.M30: 30 * 60,
    KlineInterval.H1: 3600,
    KlineInterval.H2: 2 * 3600,
    KlineInterval.H4: 4 * 3600,
    KlineInterval.H6: 6 * 3600,
    KlineInterval.H8: 8 * 3600,
    KlineInterval.H12: 12 * 3600,
    KlineInterval.D1: 86400,
    KlineInterval.D3: 3 * 86400,
    KlineInterval.W1: 7 * 86400,
    KlineInterval.MN1: 30 * 86400,
}


def _parse_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValueError(f"not a decimal: {value!r}") from e
    if not parsed.is_finite():
        raise ValueError(f"not a finite decimal: {value!r}")
    return parsed


class Candle(BaseModel):
    """
    One OHLCV bar.

    Prices and volume are exact decimal strings; ``t`` is the bucket open
    time in unix seconds. Construction fails when the bar is malformed or
    breaks the high/low envelope, so a built Candle is always valid.
    """

    model_config = ConfigDict(frozen=True)

    t: int = Field(ge=0, description="Bucket open time, unix seconds")
    o: str = Field(description="Open price")
    h: str = Field(description="High price")
    l: str = Field(description="Low price")  # noqa: E741
    c: str = Field(description="Close price")
    v: str = Field(description="Volume (base asset or USD, depending on source)")

    @field_validator("o", "h", "l", "c", "v")
    @classmethod
    def _validate_decimal(cls, value: str) -> str:
        _parse_decimal(value)
        return value

    @model_validator(mode="after")
    def _validate_envelope(self) -> "Candle":
        o, h, l, c = (_parse_decimal(x) for x in (self.o, self.h, self.l, self.c))
        if h < max(o, c) or l > min(o, c) or h < l:
            raise ValueError(f"high/low envelope violated at t={self.t}")
        if _parse_decimal(self.v) < 0:
            raise ValueError(f"negative volume at t={self.t}")
        return self


class TokenInfo(BaseModel):
    """Token metadata."""

    address: str
    chain_id: int
    symbol: str
    name: str
    decimals: int
    logo: Optional[str] = None


class PairInfo(BaseModel):
    """Most liquid trading venue discovered for a token."""

    model_config = ConfigDict(frozen=True)

    pair_address: str
    exchange_name: str
    exchange_address: str
    usd_price: float = 0.0
    liquidity_usd: float = 0.0


class PoolToken(BaseModel):
    """One constituent of an indexed liquidity pool."""

    model_config = ConfigDict(frozen=True)

    id: str
    symbol: str = ""
    decimals: str = "18"


class PoolInfo(BaseModel):
    """Liquidity pool as returned by a subgraph."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    token0: PoolToken
    token1: PoolToken
    total_value_locked_usd: str = Field(default="0", alias="totalValueLockedUSD")


class PoolMatch(BaseModel):
    """A discovered pool, the indexer it came from, and the token order."""

    model_config = ConfigDict(frozen=True)

    pool: PoolInfo
    endpoint: SubgraphEndpoint
    is_token0: bool


class KlineQuery(BaseModel):
    """Logical K-line request."""

    chain_id: int = Field(description="Chain ID")
    base: str = Field(pattern=ADDRESS_PATTERN, description="Base token contract address")
    quote: Optional[str] = Field(default=None, pattern=ADDRESS_PATTERN, description="Quote token contract address")
    pair: Optional[str] = Field(default=None, pattern=ADDRESS_PATTERN, description="Pool/pair address; skips discovery")
    interval: KlineInterval = Field(default=KlineInterval.H1, description="Candle interval")
    limit: int = Field(default=100, ge=1, le=1000, description="Number of candles to return")
    start: Optional[int] = Field(default=None, ge=0, description="Start time, unix seconds (inclusive)")
    end: Optional[int] = Field(default=None, ge=0, description="End time, unix seconds (inclusive)")

    @field_validator("chain_id")
    @classmethod
    def _validate_chain(cls, value: int) -> int:
        if not is_supported_chain(value):
            raise ValueError("Invalid chain ID")
        return value

    @model_validator(mode="after")
    def _validate_range(self) -> "KlineQuery":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class KlineResponse(BaseModel):
    """
    Uniform K-line response.

    ``interval`` echoes the requested canonical interval even when the
    upstream could only serve a coarser timeframe.
    """

    base: str
    quote: str
    chain_id: int
    base_symbol: str
    quote_symbol: str
    interval: KlineInterval
    candles: List[Candle]
