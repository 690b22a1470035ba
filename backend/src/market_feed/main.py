"""
Main FastAPI application for the market feed service.

Initializes the FastAPI app with middleware, routes and error handlers.
"""

from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import kline
from .core.config import config
from .core.exceptions import MarketFeedException, to_http_exception
from .core.logging import get_logger, setup_logging
from .services import close_kline_service

# Initialize logging
setup_logging(config)
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title=config.APP_NAME,
    description="OHLCV candles for EVM tokens from Binance and on-chain sources",
    version=config.APP_VERSION,
    debug=config.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Kline", "description": "Candlestick data and token metadata"},
        {"name": "System", "description": "System health and status"},
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(kline.router)


# Health check endpoint
@app.get("/health", tags=["System"])
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Status endpoint
@app.get("/status", tags=["System"])
async def status():
    """
    System status endpoint.

    Returns configuration and runtime information.
    """
    return {
        "status": "running",
        "app": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "debug": config.DEBUG,
        "api_host": config.API_HOST,
        "api_port": config.API_PORT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sources": {
            "binance": "active",
            "moralis": "active" if config.MORALIS_API_KEY else "disabled",
            "onchain_order": config.onchain_sources_list,
        },
    }


# Root endpoint
@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API overview."""
    return {
        "message": "Market Feed API",
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "docs": "/docs",
        "redoc": "/redoc",
        "openapi": "/openapi.json",
        "endpoints": {
            "kline": "/api/v1/kline",
            "token": "/api/v1/kline/token",
            "system": {"health": "/health", "status": "/status"},
        },
    }


# Error handlers
@app.exception_handler(MarketFeedException)
async def market_feed_exception_handler(request, exc):
    """Handle application exceptions."""
    http_exc = to_http_exception(exc)
    if http_exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", exc_info=True)
    else:
        logger.warning(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    """Handle startup event."""
    logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}")
    logger.info(f"Environment: {config.ENVIRONMENT}")


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Handle shutdown event."""
    logger.info(f"Shutting down {config.APP_NAME}")

    try:
        await close_kline_service()
        logger.info("K-line service closed")
    except Exception as e:
        logger.error(f"Error closing K-line service: {e}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )
