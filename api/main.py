"""
api/main.py -- FastAPI application entry point for Gatehouse.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- answers preflights before access control sees them
  4. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  5. enforce_access_rules  -- the access decision engine, in front of every route

Lifespan builds the auth core once from Settings (auth.components) and stores
the pieces on app.state. Shutdown closes the store.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.accounts import router as accounts_router
from api.routes.auth import router as auth_router
from auth.access import AccessDecisionEngine, normalize_path
from auth.components import build_components
from auth.dependencies import try_get_principal
from auth.errors import StoreError
from auth.models import AuthDecision
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gatehouse.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth core on startup; close the store on shutdown.

    build_components() raises ValueError on an invalid ACCESS_RULES entry,
    which aborts startup -- a server with a half-parsed policy must not run.
    """
    logger.info("Gatehouse API starting up")
    components = build_components(get_settings())
    app.state.components = components
    app.state.access_engine = components.access_engine
    app.state.credential_store = components.credential_store
    app.state.credential_service = components.credential_service
    app.state.registration_service = components.registration_service
    logger.info("Auth initialized (%d registered customers)", components.credential_store.count())

    yield

    components.close()
    logger.info("Gatehouse API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Gatehouse API",
    description="Rule-based access control, password hashing, and customer registration.",
    version=VERSION,
    lifespan=lifespan,
    # Schema and docs stay off: they would have to be listed in ACCESS_RULES
    # anyway, and the default policy would deny them.
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


def _error_response(status_code: int, code: str, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(exclude_none=True),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Access control middleware
#
# Flow:
#   decide(path, False)
#     ALLOW          -> pass through (public route)
#     DENY           -> 403
#     REQUIRES_AUTH  -> resolve the presented credential (bcrypt for Basic,
#                       so it runs in the thread pool)
#                       none / invalid -> 401 + Basic challenge
#                       valid          -> decide(path, True) confirms
#
# Registered first so it sits innermost: every add_middleware() call below
# wraps everything registered before it.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def enforce_access_rules(request: Request, call_next):
    engine: AccessDecisionEngine = request.app.state.access_engine
    path = normalize_path(request.url.path)

    decision = engine.decide(path, has_valid_credential=False)
    if decision is AuthDecision.REQUIRES_AUTH:
        principal = await run_in_threadpool(try_get_principal, request)
        if principal is None:
            return _error_response(
                401,
                "unauthorized",
                "Authentication required.",
                headers={"WWW-Authenticate": 'Basic realm="gatehouse"'},
            )
        request.state.principal = principal
        decision = engine.decide(path, has_valid_credential=True)

    if decision is not AuthDecision.ALLOW:
        logger.info("Access denied: %s %s", request.method, path)
        return _error_response(403, "forbidden", "Access denied.")
    return await call_next(request)


# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

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

app.include_router(auth_router, tags=["Auth"])
app.include_router(accounts_router, tags=["Accounts"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After header."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.")
    response.headers["Retry-After"] = str(retry_after)
    return response


# Registration reports every input problem as 400, whether pydantic or
# RegistrationService caught it.
_VALIDATION_AS_400 = frozenset({"/register"})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 (400 on /register) when the body does not parse into the route's model.

    Only loc, msg, and type are reported. pydantic's "input" would echo the
    submitted password back to the client.
    """
    errors = [{k: err[k] for k in ("loc", "msg", "type") if k in err} for err in exc.errors()]
    status_code = 400 if normalize_path(request.url.path) in _VALIDATION_AS_400 else 422
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(errors),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for HTTP exceptions, preserving their headers.

    Route handlers raise HTTPException with a dict detail ({"code", "message"});
    that dict becomes the error field as-is.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception goes to the log only. The client receives a generic message
    -- never the exception text.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Listed PUBLIC in the default rules
# and never rate-limited.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and credential store reachability.

    A store failure degrades the status but still answers 200: the process is
    alive, and a load balancer should not restart it for a database outage.
    """
    db_status = "ok"
    try:
        request.app.state.credential_store.count()
    except StoreError:
        logger.exception("Health check: credential store unreachable")
        db_status = "error"
    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": db_status},
    )
