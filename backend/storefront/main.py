"""
FastAPI application entry point with health endpoints and service routing.

``create_app`` builds a fully wired application. The database is created in
the lifespan unless one is injected, stored on ``app.state`` and disposed on
shutdown; nothing is initialised lazily at import time.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from storefront.api.v1.orders import router as orders_router
from storefront.core.config import Settings, get_settings
from storefront.core.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    log_performance,
    set_request_id,
)
from storefront.core.rate_limit import (
    bind_request_settings,
    limiter,
    reset_request_settings,
)
from storefront.database.connection import Database

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Create the application.

    Args:
        settings: Settings to run with, defaults to the process settings
        database: Pre-built database to use instead of creating one; the
            caller keeps ownership and disposes it

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Application starting",
            environment=settings.environment,
            debug=settings.debug,
            version=settings.app_version,
            reservation_mode=settings.stock_reservation_mode,
        )

        owns_database = database is None
        with log_performance(logger, "application_startup"):
            app.state.database = database or Database(settings)

        yield

        logger.info("Application shutting down")
        if owns_database:
            with log_performance(logger, "application_shutdown"):
                await app.state.database.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Marketplace order placement and fulfilment API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.settings = settings
    if database is not None:
        app.state.database = database

    # Configure rate limiting
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Assign a request ID, log the request and time it."""
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        settings_token = bind_request_settings(request.app.state.settings)

        logger.info(
            "Request received",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            with log_performance(
                logger,
                "request_processing",
                method=request.method,
                path=request.url.path,
            ):
                response = await call_next(request)

            response.headers["X-Request-ID"] = request_id

            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )

            return response
        finally:
            reset_request_settings(settings_token)
            clear_context()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return schema failures as 422 with per-field details."""
        details = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]

        logger.warning(
            "Request validation failed",
            method=request.method,
            path=request.url.path,
            errors=details,
        )

        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation Error",
                "message": "Request validation failed",
                "details": details,
                "request_id": get_request_id(),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unexpected errors and hide their details from the client."""
        logger.error(
            "Unhandled exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred",
                "request_id": get_request_id(),
            },
        )

    @app.get("/health", tags=["Health"], summary="Health check endpoint")
    async def health_check() -> dict[str, str]:
        """Always 200 while the process is serving requests."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/ready", tags=["Health"], summary="Readiness check endpoint")
    async def readiness_check(request: Request):
        """
        Readiness check verifying database connectivity.

        Returns 503 when the database cannot be reached.
        """
        db_ready = await request.app.state.database.check_health(max_retries=1)

        if not db_ready:
            logger.warning("Readiness check failed", database="unhealthy")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "not_ready",
                    "service": settings.app_name,
                    "dependencies_ready": False,
                    "database": "unhealthy",
                },
            )

        return {
            "status": "ready",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "dependencies_ready": True,
            "database": "healthy",
        }

    app.include_router(
        orders_router,
        prefix=f"{settings.api_v1_prefix}/orders",
        tags=["Orders"],
    )

    return app


app = create_app()
