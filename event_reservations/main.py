"""
Event Reservations API - Main Application Entry Point

Seat reservation for capacity-limited events:
- Pessimistic row locking so an event is never oversold
- One active booking per user per event, enforced twice (check + partial unique index)
- Cancellation that releases seats exactly once
- Payment and notification collaborators integrated through idempotent internal endpoints
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from event_reservations.core.config import get_settings
from event_reservations.core.logging import setup_logging, get_logger
from event_reservations.core.metrics import metrics_endpoint
from event_reservations.api.errors import register_exception_handlers
from event_reservations.api.router import api_router
from event_reservations.api.middleware import RequestLoggingMiddleware
from event_reservations.db.session import dispose_engine
from event_reservations.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        lock_timeout_ms=settings.LOCK_TIMEOUT_MS,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without listing cache")

    yield

    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Capacity-safe event reservations with asynchronous payment confirmation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()
