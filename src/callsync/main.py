"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
a lifespan that seeds the amoCRM token store, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.callsync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.callsync.api.v1.router import router as v1_router
from src.callsync.config import Settings, get_settings
from src.callsync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.callsync.core.token_store import TokenStore, get_token_store

logger = structlog.get_logger(__name__)


def initialize_token(settings: Settings, store: TokenStore) -> None:
    """Seed the token store from AMO_ACCESS_TOKEN."""
    if settings.AMO_ACCESS_TOKEN:
        store.set(settings.AMO_ACCESS_TOKEN)
        logger.info("startup.token_initialized")
    else:
        logger.warning(
            "startup.token_missing",
            hint="set AMO_ACCESS_TOKEN in the environment or .env file",
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging, Sentry and the token store."""
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    initialize_token(settings, get_token_store())
    logger.info("startup.complete", amo_domain=settings.AMO_DOMAIN)

    yield

    logger.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Callsync",
        version="0.1.0",
        description="Call-center webhook to amoCRM contact, lead and note reconciliation",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
