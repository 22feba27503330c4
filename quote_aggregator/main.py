"""
Main FastAPI application for the Quote Aggregator service.
Includes lifespan management for providers, the quote cache and background tasks.
"""

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import time

from quote_aggregator import __description__
from quote_aggregator.core.config import settings
from quote_aggregator.core.logging_config import setup_logging, create_logger
from quote_aggregator.api.endpoints import router as api_router, error_response, invalid_request_response
from quote_aggregator.api.schemas import InfoResponse, MarketConflictInfo, ProviderInfo
from quote_aggregator.core.exceptions import QuoteError
from quote_aggregator.models.market_data import AssetType
from quote_aggregator.services.cache import QuoteCache
from quote_aggregator.services.data_aggregator import QuoteAggregator
from quote_aggregator.services.registry import build_registry, create_providers

# Setup logging first
setup_logging()
logger = create_logger(__name__)


def build_aggregator() -> QuoteAggregator:
    """Wire the providers, registry and cache from the settings."""
    registry = build_registry(settings, create_providers(settings))
    cache = QuoteCache.from_settings(settings)
    return QuoteAggregator.from_settings(settings, registry, cache)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.
    Handles startup and shutdown of providers and background tasks.
    """
    # Startup
    logger.info("Starting Quote Aggregator Service", extra={
        "version": settings.app_version,
        "debug": settings.debug
    })

    try:
        if getattr(app.state, "aggregator", None) is None:
            app.state.aggregator = build_aggregator()
        aggregator: QuoteAggregator = app.state.aggregator

        await aggregator.connect_providers()
        await aggregator.start_background_tasks()

        app.state.startup_time = datetime.utcnow()
        logger.info("Quote Aggregator Service started successfully", extra={
            "providers": [p.provider_id for p in aggregator.registry.providers]
        })

    except Exception as e:
        logger.error("Failed to start Quote Aggregator Service", extra={
            "error": str(e)
        })
        raise

    yield  # Application is running

    # Shutdown
    logger.info("Shutting down Quote Aggregator Service")

    try:
        await app.state.aggregator.shutdown()
        logger.info("Quote Aggregator Service shutdown completed")

    except Exception as e:
        logger.error("Error during service shutdown", extra={
            "error": str(e)
        })


def create_app(aggregator: Optional[QuoteAggregator] = None) -> FastAPI:
    """Create the application; ``aggregator`` replaces the one built from settings."""
    app = FastAPI(
        title=settings.app_name,
        description=__description__,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan
    )
    app.state.aggregator = aggregator
    app.state.startup_time = datetime.utcnow()

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests and responses."""
        start_time = time.time()

        logger.info("Request received", extra={
            "method": request.method,
            "url": str(request.url),
            "client_ip": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent")
        })

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info("Request completed", extra={
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "process_time": round(process_time, 4),
                "client_ip": request.client.host if request.client else None
            })

            response.headers["X-Process-Time"] = str(process_time)
            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.error("Request failed", extra={
                "method": request.method,
                "url": str(request.url),
                "error": str(e),
                "process_time": round(process_time, 4),
                "client_ip": request.client.host if request.client else None
            })
            return error_response(500, "Generic error")

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are reported as invalid requests."""
        logger.debug("Request validation failed", extra={
            "path": request.url.path,
            "errors": str(exc.errors())
        })
        return invalid_request_response()

    @app.exception_handler(QuoteError)
    async def quote_error_handler(request: Request, exc: QuoteError):
        logger.debug("Quote error", extra={
            "path": request.url.path,
            "error": str(exc)
        })
        return error_response(500, str(exc))

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        return error_response(404, "Not found")

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc):
        logger.error("Internal server error", extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc)
        })
        return error_response(500, "Generic error")

    app.include_router(api_router, tags=["Quotes"])

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with service information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "status": "running",
            "docs_url": "/docs" if settings.debug else "disabled",
            "timestamp": datetime.utcnow()
        }

    # Health check endpoint (for load balancers)
    @app.get("/healthz", include_in_schema=False)
    async def healthz(request: Request):
        aggregator: Optional[QuoteAggregator] = request.app.state.aggregator
        if aggregator is None:
            return JSONResponse(status_code=503, content={"status": "unhealthy"})

        tasks_running = (
            not aggregator.eviction_interval or aggregator.are_background_tasks_running()
        )
        if tasks_running:
            return {"status": "healthy"}
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "tasks": tasks_running}
        )

    @app.get("/info", include_in_schema=False, response_model=InfoResponse)
    async def info(request: Request):
        """Registered providers, routing and cache state."""
        aggregator: QuoteAggregator = request.app.state.aggregator
        registry = aggregator.registry
        startup_time = request.app.state.startup_time

        routes = {}
        for asset_type in AssetType:
            route = registry.default_route(asset_type)
            if route is not None:
                routes[asset_type.value] = asdict(route)

        return InfoResponse(
            service={
                "name": settings.app_name,
                "version": settings.app_version,
                "debug": settings.debug,
                "uptime_seconds": (datetime.utcnow() - startup_time).total_seconds(),
                "startup_time": startup_time.isoformat(),
                "partial_results": aggregator.partial_results
            },
            providers=[
                ProviderInfo(
                    id=provider.provider_id,
                    markets=provider.supported_markets(),
                    asset_types=sorted(provider.supported_asset_types, key=lambda t: t.value)
                )
                for provider in registry.providers
            ],
            market_conflicts=[
                MarketConflictInfo(**asdict(conflict)) for conflict in registry.conflicts
            ],
            default_routes=routes,
            cache=aggregator.cache.stats(),
            background_tasks_running=aggregator.are_background_tasks_running(),
            last_cache_eviction=aggregator.get_last_eviction_time()
        )

    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "quote_aggregator.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    run()
