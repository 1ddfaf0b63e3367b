"""Request correlation and access logging for the catalog API.

Error envelopes are produced by the exception handlers in
:mod:`shopcatalog.main`; this module only tags and times requests.
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from shopcatalog.infrastructure.config import settings

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def _endpoint_name(request: Request) -> str | None:
    """Name of the handler that served the request, once routing is done."""
    endpoint = request.scope.get("endpoint")
    return getattr(endpoint, "__name__", None)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log its outcome.

    The id is taken from the ``X-Request-ID`` header or generated, bound
    into the structlog context while the request runs and echoed on the
    response. The completion entry names the catalog endpoint that
    served the request and becomes a warning past ``slow_request_ms``.

    Args:
        app: Wrapped ASGI application.
        slow_request_ms: Duration above which a request is logged as slow.
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float | None = None) -> None:
        super().__init__(app)
        self.slow_request_ms = (
            settings.slow_request_ms if slow_request_ms is None else slow_request_ms
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            started = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception:
                logger.error(
                    "Catalog request failed",
                    method=request.method,
                    path=request.url.path,
                    endpoint=_endpoint_name(request),
                )
                raise

            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            log = logger.warning if duration_ms > self.slow_request_ms else logger.info
            log(
                "Catalog request completed",
                method=request.method,
                path=request.url.path,
                endpoint=_endpoint_name(request),
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_middleware(app: FastAPI) -> None:
    """Install the catalog request middleware.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(RequestIdMiddleware, slow_request_ms=settings.slow_request_ms)
