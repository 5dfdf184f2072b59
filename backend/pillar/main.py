"""Main FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pillar.settings import settings
from pillar.api.internal import router as internal_router
from pillar.api.notifications import router as notifications_router
from pillar.api.push import router as push_router
from pillar.api.tasks import router as tasks_router
from pillar.api.deps import get_live_update_notifier
from pillar.domain.common.errors import (
    AuthorizationError as DomainAuthorizationError,
    ConflictError as DomainConflictError,
    NotFoundError as DomainNotFoundError,
    ValidationError as DomainValidationError,
)
from pillar.infra.db import base as db_base
from pillar.infra.db.base import Base
# Import all models to ensure they're registered with Base
from pillar.infra.db.models import (  # noqa: F401
    BoardModel,
    TaskModel,
    NotificationModel,
    NotificationPreferenceModel,
    PushSubscriptionModel,
)
from pillar.infra.jobs.scheduler import NotificationWorker
from pillar.infra.messaging.redis_bus import redis_bus
from pillar.services.notification_service import NotificationRunner

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _build_worker() -> NotificationWorker:
    def runner_factory() -> NotificationRunner:
        return NotificationRunner(db_base.AsyncSessionLocal, notifier=get_live_update_notifier())

    return NotificationWorker(
        runner_factory,
        interval_seconds=settings.notification_worker_interval_seconds,
        initial_delay_seconds=settings.notification_worker_initial_delay_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    if db_base.engine is not None:
        try:
            async with db_base.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            # Database might not be ready yet; requests will fail until it is
            logger.warning("Could not connect to database during startup: %s", e)

    if settings.live_updates_enabled:
        try:
            await redis_bus.connect()
        except Exception as e:
            logger.warning("Could not connect to Redis during startup (live updates off): %s", e)

    worker = None
    if settings.notification_worker_enabled and db_base.AsyncSessionLocal is not None:
        worker = _build_worker()
        worker.start()

    yield

    # Shutdown
    try:
        if worker is not None:
            await worker.stop()
        await redis_bus.disconnect()
        if db_base.engine is not None:
            await db_base.engine.dispose()
    except asyncio.CancelledError:
        logger.info("Lifespan shutdown cancelled (e.g. Ctrl+C); cleanup attempted.")
        raise


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.info("[REQUEST] %s %s", request.method, request.url.path)
        logger.debug("   Query params: %s", dict(request.query_params))

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "[RESPONSE] %s %s - %s (%.3fs)",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are a bad request."""
    errors = exc.errors()
    logger.warning("[VALIDATION ERROR] %s %s: %s errors", request.method, request.url.path, len(errors))
    for i, error in enumerate(errors, 1):
        logger.debug("   Error %s: %s", i, error)
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder([{k: v for k, v in e.items() if k != "ctx"} for e in errors])},
    )


# Domain error handlers: map domain exceptions to correct HTTP status
@app.exception_handler(DomainNotFoundError)
async def domain_not_found_handler(request: Request, exc: DomainNotFoundError):
    """Return 404 when a resource is not found."""
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DomainAuthorizationError)
async def domain_authorization_handler(request: Request, exc: DomainAuthorizationError):
    """Return 403 when the user is not authorized."""
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(DomainValidationError)
async def domain_validation_handler(request: Request, exc: DomainValidationError):
    """Return 400 for domain validation errors."""
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(DomainConflictError)
async def domain_conflict_handler(request: Request, exc: DomainConflictError):
    """Return 409 for conflict errors."""
    return JSONResponse(status_code=409, content={"detail": exc.message})


# Health check (root and under /v1 so GET /v1/health works behind a /v1 proxy prefix)
@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "webPush": settings.web_push_configured,
        "nativePush": settings.native_push_configured,
    }


# API v1 routes
app.include_router(notifications_router, prefix=settings.api_v1_prefix)
app.include_router(push_router, prefix=settings.api_v1_prefix)
app.include_router(tasks_router, prefix=settings.api_v1_prefix)
app.include_router(internal_router, prefix=settings.api_v1_prefix)
