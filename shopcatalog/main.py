"""Catalog API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from shopcatalog.api.categories import router as categories_router
from shopcatalog.api.health import router as health_router
from shopcatalog.api.middleware import setup_middleware
from shopcatalog.api.products import router as products_router
from shopcatalog.domain.exceptions import (
    CategoryNotFoundError,
    DomainError,
    ProductNotFoundError,
    StoreUnavailableError,
)
from shopcatalog.infrastructure.config import settings
from shopcatalog.infrastructure.database import engine
from shopcatalog.infrastructure.logging_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging()
    logger.info(
        "Starting catalog API",
        version=settings.api_version,
        debug=settings.debug,
        timezone=settings.catalog_timezone,
    )

    yield

    logger.info("Shutting down catalog API")
    await engine.dispose()


app = FastAPI(
    title="Shop Catalog API",
    description="Faceted product search and category trees for a storefront",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request correlation; error envelopes come from the handlers below
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(products_router)
app.include_router(categories_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


DOMAIN_ERRORS: dict[type[DomainError], tuple[int, str]] = {
    ProductNotFoundError: (status.HTTP_404_NOT_FOUND, "PRODUCT_NOT_FOUND"),
    CategoryNotFoundError: (status.HTTP_404_NOT_FOUND, "CATEGORY_NOT_FOUND"),
    StoreUnavailableError: (status.HTTP_503_SERVICE_UNAVAILABLE, "STORE_UNAVAILABLE"),
}


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain errors to HTTP responses."""
    request_id = getattr(request.state, "request_id", None)
    status_code, error_code = DOMAIN_ERRORS.get(
        type(exc), (status.HTTP_400_BAD_REQUEST, "DOMAIN_ERROR")
    )

    if isinstance(exc, StoreUnavailableError):
        logger.error(
            "Catalog store unavailable",
            path=request.url.path,
            **exc.details,
        )
        # the driver message stays in the logs
        details: dict = {"operation": exc.details.get("operation")}
        message = "Catalog store is unavailable"
    else:
        details = exc.details
        message = exc.message

    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": [],
            "request_id": request_id,
        },
    )
