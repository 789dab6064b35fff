"""
FastAPI application factory.
"""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafewatch import __version__
from cafewatch.api.dependencies import cleanup_dependencies, get_monitor_service
from cafewatch.api.routes import health, monitor, ws_events
from cafewatch.config.settings import get_settings

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Monitor API starting up")
    settings = get_settings()

    loop_task: asyncio.Task | None = None
    if settings.api_run_monitor:
        service = await get_monitor_service()
        loop_task = asyncio.create_task(service.start(), name="monitor_loop")
        logger.info("Monitor loop started inside the API process")

    yield

    logger.info("Monitor API shutting down")
    await cleanup_dependencies(loop_task)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "monitor", "description": "Cursors, login state and manual cycles"},
        {"name": "websocket", "description": "Live monitor events"},
    ]

    app = FastAPI(
        title="cafe-watch",
        description="""
Operator API for the cafe post monitor.

## Authentication

Requires `X-API-KEY` header for all requests except `/health`.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Origins from CORS_ORIGINS env var, comma-separated
    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging and correlation ID
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid.uuid4())
        )
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(monitor.router, tags=["monitor"])
    app.include_router(ws_events.router, tags=["websocket"])

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "service": "cafe-watch",
            "version": __version__,
            "docs": "/docs",
        }

    return app
