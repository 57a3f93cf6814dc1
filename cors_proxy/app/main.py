"""
FastAPI CORS Proxy Application Factory
======================================

This is the main entry point for the proxy service that lets browser clients
call arbitrary HTTP APIs by forwarding their requests and adding permissive
CORS headers to the replies.

Architecture:
    Browser → Proxy (this service) → Target URL

Routers:
    - * /  : Proxy endpoint (target from x-target-url header or url query param)

Environment Variables (all optional, see config.py):
    - LOG_LEVEL: Logging level (default: INFO)
    - PROXY_HOST / PROXY_PORT: Bind address (default: 0.0.0.0:8080)
    - UPSTREAM_TIMEOUT_SECONDS: Overall upstream deadline (default: 30)
    - ALLOWED_OUTBOUND_HOSTS: Comma-separated host patterns (default: *)

Running the Service:
    Development:
        uvicorn cors_proxy.app.main:app --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn cors_proxy.app.main:app --host 0.0.0.0 --port 8080 --workers 4

    With custom log level:
        LOG_LEVEL=DEBUG cors-proxy
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .config import Settings, get_settings, validate_configuration
from .models import ErrorResponse
from .proxy.client import HttpxOutboundClient, OutboundClient
from .proxy.forwarder import Forwarder
from .proxy.headers import decorate_headers
from .proxy.pipeline import ProxyPipeline
from .proxy.routes import proxy_router

logger = logging.getLogger("cors_proxy.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Application state
class AppState:
    """
    Per-application state container.

    Holds the outbound client and the pipeline built on it. ``owns_client``
    is True when the client was created at startup and must be closed at
    shutdown.
    """
    def __init__(self, settings: Settings):
        self.settings: Settings = settings
        self.outbound_client: Optional[OutboundClient] = None
        self.pipeline: Optional[ProxyPipeline] = None
        self.owns_client: bool = False


def build_pipeline(settings: Settings, outbound_client: OutboundClient) -> ProxyPipeline:
    forwarder = Forwarder(outbound_client, timeout=settings.UPSTREAM_TIMEOUT_SECONDS)
    return ProxyPipeline(
        forwarder,
        preflight_status=settings.PREFLIGHT_STATUS_CODE,
        distinguish_error_status=settings.DISTINGUISH_ERROR_STATUS,
        strip_upstream_cors=settings.STRIP_UPSTREAM_CORS_HEADERS,
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging
        - Report configuration warnings
        - Create the shared httpx client unless one was injected

    Shutdown tasks:
        - Close the httpx client if it was created here
    """
    app_state: AppState = app.state.app_state
    settings = app_state.settings

    setup_logging(settings.LOG_LEVEL)

    config_status = validate_configuration(settings)
    for error in config_status["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in config_status["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    if app_state.pipeline is None:
        client = HttpxOutboundClient.from_settings(settings)
        app_state.outbound_client = client
        app_state.owns_client = True
        app_state.pipeline = build_pipeline(settings, client)
        logger.info("Initialized outbound HTTP client")

    logger.info(
        "CORS proxy started",
        extra={
            "allowed_outbound_hosts": settings.ALLOWED_OUTBOUND_HOSTS,
            "upstream_timeout_seconds": settings.UPSTREAM_TIMEOUT_SECONDS,
            "log_level": settings.LOG_LEVEL
        }
    )

    yield

    # Shutdown
    logger.info("Shutting down CORS proxy")

    if app_state.owns_client and app_state.outbound_client is not None:
        await app_state.outbound_client.aclose()
        app_state.outbound_client = None
        app_state.pipeline = None
        app_state.owns_client = False
        logger.info("Closed outbound HTTP client")


def _decorated_json(status_code: int, body: ErrorResponse, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers=dict(decorate_headers(httpx.Headers(headers or {})).items()),
    )


# Create FastAPI application
def create_app(
    settings: Optional[Settings] = None,
    outbound_client: Optional[OutboundClient] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use (defaults to get_settings())
        outbound_client: Outbound HTTP capability to use instead of creating
            an httpx client at startup (tests inject fakes here)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="CORS Proxy",
        description="Forwards browser requests to arbitrary HTTP targets with permissive CORS headers",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app_state = AppState(settings)
    if outbound_client is not None:
        app_state.outbound_client = outbound_client
        app_state.pipeline = build_pipeline(settings, outbound_client)
    app.state.app_state = app_state

    # Proxy router: the single forwarding endpoint
    app.include_router(proxy_router)

    # Framework-level errors (404, 405, 503) keep the CORS header set
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _decorated_json(
            exc.status_code,
            ErrorResponse(error="http_error", message=str(exc.detail)),
            exc.headers,
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized, CORS-decorated error response.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return _decorated_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred",
            ),
        )

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()

    uvicorn.run(
        "cors_proxy.app.main:app",
        host=settings.PROXY_HOST,
        port=settings.PROXY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
