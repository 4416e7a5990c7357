"""
api/main.py -- FastAPI application entry point for the Degenius account API.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- credentialed CORS for the configured frontend origins
  2. SlowAPIMiddleware -- app-wide limits from api.limiter; per-route limits
                          are checked by the @limiter.limit wrappers

Lifespan builds the stores and the mailer on startup, starts the action-token
purge task, and tears all of it down on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.accounts import router as accounts_router
from api.routes.outreach import router as outreach_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError, DependencyError
from mail.sender import Mailer
from outreach.store import OutreachStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("degenius.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired verification and reset tokens on a fixed interval.

    Reads already treat an expired token as absent; this only keeps the table
    small. A failed purge is logged and retried on the next tick.
    CancelledError from task.cancel() propagates out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(settings.token_purge_interval_seconds)
        try:
            removed = await asyncio.to_thread(app.state.user_store.purge_expired_tokens)
        except SQLAlchemyError:
            logger.exception("Action token purge failed; retrying in %ds", settings.token_purge_interval_seconds)
            continue
        if removed:
            logger.info("Purged %d expired action tokens", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create stores and mailer on startup; close them on shutdown.

    The purge task starts last because it references app.state.user_store.
    """
    logger.info("%s API starting up", settings.app_name)
    app.state.user_store = UserStore(settings.database_url, token_ttl_seconds=settings.action_token_ttl_seconds)
    app.state.outreach_store = OutreachStore(settings.database_url)
    app.state.mailer = Mailer(settings)
    logger.info("Stores initialized (smtp=%s:%d)", settings.smtp_host, settings.smtp_port)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await app.state.purge_task
    app.state.outreach_store.close()
    app.state.user_store.close()
    logger.info("%s API shutdown complete", settings.app_name)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Degenius API",
    description="Student and investor accounts for the Degenius FX Academy.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# The session cookie is sent cross-site by the SPA, so CORS must allow
# credentials and therefore list explicit origins.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Top-level routes
#
# Registered before the routers so /api/v1/health is never read as a
# /{kind}/... account path.
# ---------------------------------------------------------------------------


@app.get("/", tags=["Health"])
async def root() -> dict:
    return {"success": True, "status": 200, "message": f"Welcome to the {settings.app_name} API"}


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Liveness plus a database round trip. 503 when the database is down."""
    try:
        request.app.state.user_store.ping()
        db = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db = "unavailable"
    body = HealthResponse(
        status="healthy" if db == "ok" else "degraded",
        version=__version__,
        components={"database": db},
    )
    return JSONResponse(status_code=200 if db == "ok" else 503, content=body.model_dump())


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(accounts_router, prefix="/api", tags=["Accounts"])
app.include_router(outreach_router, prefix="/api/v2", tags=["Outreach"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves as {success: false, status, code, error}.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status_code, code=code, error=message).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, DependencyError):
        logger.error(
            "Dependency failure on %s %s: %s (cause: %r)",
            request.method,
            request.url.path,
            exc.message,
            exc.__cause__,
        )
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with Retry-After. Plain def so SlowAPIMiddleware can call it without awaiting."""
    retry_after = int(getattr(exc, "retry_after", 60))
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "unknown")
    response = _error(429, "rate_limited", "Too many requests, please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body or query failed schema parsing (malformed JSON, limit=0, ...)."""
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request: {where} {first.get('msg', '')}".strip() if where else "Invalid request"
    return _error(422, "validation_error", message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected failures: full traceback to the log, generic message to the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")
