"""
api/main.py -- FastAPI application entry point for TokenGate.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the auth components from Settings once per process and
stores them on app.state (store, hasher, token service, guard, account
service), then bootstraps the seed accounts. Nothing in auth/ reads the
environment; everything it needs is injected here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ApiIndexResponse, EndpointInfo, ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.resources import router as resources_router
from auth.errors import AuthError, TokenError
from auth.guard import AuthGuard
from auth.passwords import PasswordHasher
from auth.seed import bootstrap_seed_accounts
from auth.service import AccountService
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def install_components(app: FastAPI, store: AccountStore, hasher: PasswordHasher, tokens: TokenService) -> None:
    """Attach the auth components to app.state.

    Shared by the real lifespan and the test fixtures so both wire the
    dependency graph the same way.
    """
    app.state.account_store = store
    app.state.password_hasher = hasher
    app.state.token_service = tokens
    app.state.auth_guard = AuthGuard(tokens)
    app.state.account_service = AccountService(store, hasher, tokens)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Settings -- fails fast on a missing SECRET_KEY in production.
      2. Store -- creates the schema if needed.
      3. Seed bootstrap -- needs the store and the hasher.
    """
    settings = get_settings()
    logger.info("TokenGate API starting up (debug=%s)", settings.debug)
    store = AccountStore(settings.database_url)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(secret_key=settings.secret_key, ttl_seconds=settings.token_ttl_seconds)
    install_components(app, store, hasher, tokens)
    bootstrap_seed_accounts(store, hasher, settings.effective_seed_accounts())
    logger.info(
        "Auth initialized (accounts=%d, token_ttl=%s)",
        store.count(),
        settings.token_ttl,
    )

    yield

    store.close()
    logger.info("TokenGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TokenGate API",
    description="Username/password registration and login with signed, time-limited bearer tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() calls are applied outermost-first from the caller's
# perspective. Register in the order you want the request to encounter
# them: TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time before and after call_next gives the latency.
# Only the path is logged -- never headers, so tokens stay out of the logs.
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, tags=["Auth"])
app.include_router(resources_router, tags=["Protected"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any AuthError from the core as the standard envelope.

    TokenError subclasses all render the same body; the specific reason was
    already logged by AuthGuard. 401 responses carry WWW-Authenticate so
    clients know which scheme to use.
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.__class__.__name__, request.method, request.url.path, exc_info=exc)
    response = _error_response(exc.status_code, exc.code, exc.message)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, TokenError):
        response.headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
    if request.url.path == "/login":
        response.headers["Cache-Control"] = "no-store"  # [M5]
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (unknown path, wrong method) in the envelope."""
    response = _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health and index endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database probe."""
    store: AccountStore | None = getattr(request.app.state, "account_store", None)
    database = "ok" if store is not None and store.ping() else "error"
    return HealthResponse(
        version=VERSION,
        timestamp=datetime.now(timezone.utc),
        components={"app": "ok", "database": database},
    )


_BEARER = "Authorization: Bearer <token>"
_CREDENTIALS = {"username": "string", "password": "string"}


@app.get("/api", tags=["Health"])
def api_index() -> ApiIndexResponse:
    """Describe the available endpoints."""
    return ApiIndexResponse(
        name="TokenGate API",
        version=VERSION,
        endpoints={
            "POST /register": EndpointInfo(description="Register a new user", body=_CREDENTIALS),
            "POST /login": EndpointInfo(description="Authenticate and get a bearer token", body=_CREDENTIALS),
            "POST /refresh": EndpointInfo(description="Refresh a bearer token", auth=_BEARER),
            "GET /protected": EndpointInfo(description="Protected endpoint", auth=_BEARER),
            "GET /profile": EndpointInfo(description="Current user's account", auth=_BEARER),
            "GET /users/{user_id}": EndpointInfo(description="One account (owner or admin)", auth=_BEARER),
            "GET /users": EndpointInfo(description="List all accounts (admin only)", auth=_BEARER),
            "GET /admin": EndpointInfo(description="Admin-only endpoint", auth=_BEARER),
            "GET /health": EndpointInfo(description="Health check"),
        },
    )
