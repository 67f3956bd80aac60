"""
EstateDesk - real-estate back office, lead ingestion service.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.health import APP_VERSION
from src.api.router import api_router
from src.config import get_meta_webhook_config, get_settings
from src.database import dispose_engine
from src.services.lead_ingestion import drain_inflight
from src.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("estatedesk")

SHUTDOWN_DRAIN_SECONDS = 10.0


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("EstateDesk starting up (env=%s)", settings.app_env)

    meta_config = get_meta_webhook_config()
    for secret_name in meta_config.missing_secrets:
        logger.warning(
            "%s not set - Meta lead webhook will reject traffic until it is configured.",
            secret_name,
        )

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    yield

    # Let detached lead ingestion finish before the loop goes away
    logger.info("EstateDesk shutting down - draining lead ingestion tasks...")
    still_running = await drain_inflight(timeout=SHUTDOWN_DRAIN_SECONDS)
    await dispose_engine()
    logger.info("EstateDesk shutdown complete (%d ingestion task(s) abandoned)", still_running)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="EstateDesk",
        description="Real-estate back office - Meta Lead Ads ingestion",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
            settings.app_base_url,
        ],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
