from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.responses import Response

from ssms.api.v1.router import api_router
from ssms.config import _DEFAULT_SECRET_KEYS, APP_VERSION, settings
from ssms.core.errors import register_exception_handlers
from ssms.core.logging_config import configure_logging
from ssms.core.metrics import app_info
from ssms.core.rate_limit import limiter
from ssms.database import async_session, engine
from ssms.middleware.prometheus import PrometheusMiddleware
from ssms.models import Base
from ssms.services.event_bus import EventBus
from ssms.services.invitation_service import invite_sweep_loop

configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app_info.info({"version": APP_VERSION, "environment": settings.ENVIRONMENT})


def check_secret_key() -> None:
    """Refuse to start outside development with the default secret key."""
    if settings.SECRET_KEY in _DEFAULT_SECRET_KEYS:
        if settings.ENVIRONMENT != "development":
            raise RuntimeError(
                "SECRET_KEY must be set to a strong random value in production. "
                'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(64))"'
            )
        logger.warning(
            "Using default SECRET_KEY, acceptable for development only. "
            "Set a strong SECRET_KEY before deploying to production."
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    check_secret_key()

    async with engine.begin() as conn:
        if settings.RESET_DB:
            logger.warning("RESET_DB is set: dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    sweep_task = asyncio.create_task(
        invite_sweep_loop(async_session, settings.INVITE_SWEEP_INTERVAL_SECONDS)
    )

    yield

    sweep_task.cancel()
    try:
        await sweep_task
    except asyncio.CancelledError:
        pass


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.ENVIRONMENT == "development" else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.ENVIRONMENT == "development" else None,
    )
    application.state.event_bus = EventBus()
    application.state.settings = settings

    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(application)

    application.add_middleware(PrometheusMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @application.get("/api/health")
    async def health():
        return {"status": "ok", "version": APP_VERSION}

    @application.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return application


app = create_app()
