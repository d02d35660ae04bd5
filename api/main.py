"""
api/main.py -- FastAPI application entry point for the materials portal.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for the React front end origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the authentication components once per process and stores
them on app.state (identity store, revocation ledger, lockout tracker, token
authority, access gate, login flow), then starts the hourly maintenance task.
Shutdown cancels the task and closes the database engine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

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
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.gate import AccessGate
from auth.lockout import LockoutTracker
from auth.login import LoginFlow
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from auth.tokens import TokenAuthority
from core.config import Settings, get_settings
from core.errors import PortalError, TooManyAttempts

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("portal.api")

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def install_auth_state(
    app: FastAPI,
    settings: Settings,
    store: IdentityStore,
    ledger: RevocationLedger,
    tracker: LockoutTracker | None = None,
    authority: TokenAuthority | None = None,
) -> None:
    """Attach the auth components to app.state.

    Shared by the lifespan and the test fixtures so both wire the same graph.
    TokenAuthority raises ConfigurationError here if no secret is configured,
    which aborts startup.
    """
    if tracker is None:
        tracker = LockoutTracker(threshold=settings.lockout_threshold, lockout_seconds=settings.lockout_seconds)
    if authority is None:
        authority = TokenAuthority(settings.jwt_secret, expire_seconds=settings.token_expire_seconds)
    app.state.identity_store = store
    app.state.revocation_ledger = ledger
    app.state.lockout_tracker = tracker
    app.state.token_authority = authority
    app.state.access_gate = AccessGate(authority, ledger)
    app.state.login_flow = LoginFlow(store, tracker, authority, bcrypt_rounds=settings.bcrypt_rounds)


# ---------------------------------------------------------------------------
# Background maintenance task
# ---------------------------------------------------------------------------


async def run_maintenance(app: FastAPI) -> int:
    """Sweep expired revocation entries and expired lockout records once.

    The sweep is a single DELETE run in a worker thread; it takes no
    application lock, so login and logout handlers are never held up by it.
    Returns the number of revocation entries removed.
    """
    removed = await asyncio.to_thread(app.state.revocation_ledger.sweep_expired)
    purged = app.state.lockout_tracker.purge_expired()
    logger.info("Cleaned up %d expired revoked tokens and %d expired lockouts", removed, purged)
    return removed


async def _maintenance_loop(app: FastAPI, interval_seconds: int) -> None:
    """Run run_maintenance() every interval_seconds until cancelled.

    A storage failure is logged and the loop keeps going; the next tick
    retries. CancelledError from task.cancel() during shutdown propagates out
    of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_maintenance(app)
        except SQLAlchemyError:
            logger.exception("Revocation sweep failed")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the store owns the engine the ledger reuses, and
    the maintenance task references both the ledger and the tracker.
    """
    settings = get_settings()
    logger.info("Portal API starting up")
    store = IdentityStore(settings.database_url)
    ledger = RevocationLedger(engine=store.engine)
    install_auth_state(app, settings, store, ledger)
    logger.info(
        "Auth initialized (lockout=%d attempts/%ds, token lifetime=%ds)",
        settings.lockout_threshold,
        settings.lockout_seconds,
        settings.token_expire_seconds,
    )
    app.state.maintenance_task = asyncio.create_task(_maintenance_loop(app, settings.revocation_sweep_seconds))

    yield

    app.state.maintenance_task.cancel()
    store.close()
    logger.info("Portal API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Materials Portal API",
    description="Session and access control for the materials portal admin panel.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
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
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every rejection uses the same envelope: {"success": false, "message": ...}
# plus optional extra keys (lockoutTime, attempts, code, redirect).
# ---------------------------------------------------------------------------


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.message, request.method, request.url.path)
    response = JSONResponse(status_code=exc.status_code, content=exc.to_body())
    if isinstance(exc, TooManyAttempts):
        response.headers["Retry-After"] = str(exc.lockout_time)
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a slowapi limit is exceeded.

    slowapi stores the limit on the exception; Retry-After falls back to 60s.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(message="Too many requests. Please try again later.").model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400 with the standard envelope."""
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Request validation failed.", "detail": str(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Covers FastAPI HTTPException and Starlette routing errors (unknown path 404, wrong method 405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception is logged only, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message="Internal server error").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancer probes must always get through.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, current version and database reachability.

    A failed database probe reports status "degraded" with HTTP 200 so the
    probe result stays readable by monitoring.
    """
    database = "ok"
    try:
        request.app.state.identity_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
