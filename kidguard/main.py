"""KidGuard FastAPI Application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from kidguard.config import settings, validate_secret_key
from kidguard.database import close_database
from kidguard.logging_config import get_logger, setup_logging
from kidguard.middleware import (
    CorrelationIdMiddleware,
    limiter,
    rate_limit_exceeded_handler,
)
from kidguard.routers import admin, alerts, chat, health, protection

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Migrations are applied with `alembic upgrade head` before startup
    validate_secret_key()
    logger.info("KidGuard API started", safety_timezone=settings.safety_timezone)

    yield

    logger.info("Shutting down KidGuard API...")
    await close_database()
    logger.info("KidGuard API shutdown complete")


app = FastAPI(
    title="KidGuard API",
    description="Child safety monitoring and guardian alerting API",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(protection.router)
app.include_router(alerts.router)
app.include_router(admin.router)
app.include_router(chat.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "KidGuard API",
        "version": "0.1.0",
        "docs": "/docs",
    }
