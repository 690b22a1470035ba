"""
API routes for K-line (candlestick) data.

The backend picks the data source; the response format is identical
whichever source answered.
"""

from typing import Annotated, Optional

import pydantic
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...core.exceptions import ResourceNotFoundError, UpstreamError, to_http_exception
from ...core.logging import get_logger
from ...core.price_feeds import is_supported_chain
from ...schemas.kline import ADDRESS_PATTERN, KlineInterval, KlineQuery, KlineResponse, TokenInfo
from ...services import KlineService, get_kline_service
from ...services.market_data.exceptions import MarketDataException, UpstreamUnavailableError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/kline", tags=["Kline"])


@router.get("", response_model=KlineResponse)
async def get_klines(
    service: Annotated[KlineService, Depends(get_kline_service)],
    chain_id: Annotated[int, Query(description="Chain ID")],
    base: Annotated[str, Query(description="Base token contract address")],
    quote: Annotated[Optional[str], Query(description="Quote token contract address")] = None,
    pair: Annotated[Optional[str], Query(description="Pool/pair address; skips discovery")] = None,
    interval: Annotated[KlineInterval, Query(description="Candle interval")] = KlineInterval.H1,
    limit: Annotated[int, Query(ge=1, le=1000, description="Number of candles")] = 100,
    start: Annotated[Optional[int], Query(ge=0, description="Start time, unix seconds")] = None,
    end: Annotated[Optional[int], Query(ge=0, description="End time, unix seconds")] = None,
) -> KlineResponse:
    """
    Get K-line (candlestick) data for a trading pair.

    Args:
        chain_id (int): Chain ID (1, 56, 8453 or 97).
        base (str): Base token address.
        quote (str, optional): Quote token address. Defaults to the chain's reference stablecoin.
        pair (str, optional): Pool/pair address to read directly.
        interval (KlineInterval): Candle interval. Defaults to "1h".
        limit (int): Number of candles. Defaults to 100. Max 1000.
        start (int, optional): Start time (unix seconds, inclusive).
        end (int, optional): End time (unix seconds, inclusive).

    Returns:
        KlineResponse: Candles oldest-first; empty when no source has data.
    """
    try:
        query = KlineQuery(
            chain_id=chain_id,
            base=base,
            quote=quote,
            pair=pair,
            interval=interval,
            limit=limit,
            start=start,
            end=end,
        )
    except pydantic.ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        ) from e

    try:
        return await service.get_klines(query)
    except UpstreamUnavailableError as e:
        logger.warning(f"Upstream data source timeout: {e}")
        raise to_http_exception(
            UpstreamError("Upstream data source timed out. Please try again shortly.", status_code=504)
        ) from e
    except MarketDataException as e:
        logger.error(f"Upstream data source error: {e}")
        raise to_http_exception(UpstreamError(str(e))) from e


@router.get("/token", response_model=TokenInfo)
async def get_token_info(
    service: Annotated[KlineService, Depends(get_kline_service)],
    chain_id: Annotated[int, Query(description="Chain ID")],
    address: Annotated[str, Query(pattern=ADDRESS_PATTERN, description="Token contract address")],
) -> TokenInfo:
    """
    Get token metadata (symbol, name, decimals, logo).

    Raises:
        HTTPException: 422 for an unsupported chain, 404 if the token is unknown.
    """
    if not is_supported_chain(chain_id):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid chain ID")

    info = await service.get_token_info(chain_id, address)
    if info is None:
        raise to_http_exception(ResourceNotFoundError("Token", address))
    return info
