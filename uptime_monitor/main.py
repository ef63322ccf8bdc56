"""FastAPI application entry point for Uptime Monitor."""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from uptime_monitor import __version__
from uptime_monitor.api import health, monitors, stats, users
from uptime_monitor.config import load_config, Config
from uptime_monitor.core.notifier import build_notifier
from uptime_monitor.core.rate_limiter import limiter
from uptime_monitor.core.scheduler import MonitorScheduler
from uptime_monitor.database.base import Base
from uptime_monitor.database.session import configure_database
from uptime_monitor.utils.logger import setup_logging, get_logger

logger = get_logger(__name__)

# Loaded at import so middleware configuration is available at app creation
app_config: Optional[Config] = None
try:
    app_config = load_config()
except (FileNotFoundError, ValueError) as e:
    logger.error("Failed to load configuration", extra={"error": str(e)})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Lifespan context manager for FastAPI application.

    Creates tables, wires the notifier and starts the sweep scheduler on
    startup; stops it and disposes the engine on shutdown.
    """
    if app_config is None:
        raise RuntimeError("Configuration not loaded at module level")

    app.state.config = app_config

    setup_logging(
        level=app_config.logging.level,
        log_format=app_config.logging.format,
        log_file=app_config.logging.file,
        console=app_config.logging.console
    )
    logger.info("Starting Uptime Monitor application")

    engine = await configure_database(app_config.database.url, echo=app_config.database.echo)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    notifier = build_notifier(app_config.notifications.email)
    app.state.notifier = notifier

    scheduler = MonitorScheduler.from_config(app_config, notifier)
    app.state.scheduler = scheduler
    await scheduler.start()

    logger.info(
        "Uptime Monitor started successfully",
        extra={
            "version": __version__,
            "database": app_config.database.type,
            "interval_ms": app_config.monitoring.interval_ms,
            "email_test_mode": app_config.notifications.email.test_mode
        }
    )

    yield

    logger.info("Shutting down Uptime Monitor application")
    await scheduler.close()
    await engine.dispose()
    logger.info("Uptime Monitor shut down successfully")


app = FastAPI(
    title="Uptime Monitor",
    description="Periodic website availability checks with down and recovery email alerts",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.state.limiter = limiter

if app_config and app_config.api.cors.enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.api.cors.allow_origins,
        allow_credentials=app_config.api.cors.allow_credentials,
        allow_methods=app_config.api.cors.allow_methods,
        allow_headers=app_config.api.cors.allow_headers,
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Tag every request and response with an X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.exception(
        "Unhandled exception",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "error": str(exc)
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "request_id": request_id
        },
        headers={"X-Request-ID": request_id}
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded errors."""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        "Rate limit exceeded",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "client": get_remote_address(request)
        }
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "request_id": request_id
        },
        headers={
            "X-Request-ID": request_id,
            "Retry-After": "60"
        }
    )


app.include_router(health.router, tags=["Health"])
app.include_router(users.router, prefix="/api/v1", tags=["Users"])
app.include_router(monitors.router, prefix="/api/v1", tags=["Monitors"])
app.include_router(stats.router, prefix="/api/v1", tags=["Statistics"])


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "name": "Uptime Monitor",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    if not app_config:
        app_config = load_config()

    uvicorn.run(
        "uptime_monitor.main:app",
        host=app_config.api.host,
        port=app_config.api.port,
        reload=app_config.api.reload,
        log_level=app_config.logging.level.lower()
    )
