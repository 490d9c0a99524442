"""
api/routes/auth.py -- Registration, login, and identity endpoints.

Routes:
  POST /register   -- create an account; 201 on success
  POST /login      -- verify email/password; returns a bearer token and sets
                      the access_token cookie
  POST /logout     -- clears the cookie
  GET  /me         -- identity of the authenticated caller

Access is decided by the access-control middleware in api/main.py, not here.
The default rules mark /register, /login, /logout PUBLIC and /me
AUTHENTICATED.

Error translation:
  This module is the only place registration errors become HTTP statuses.
    ValidationError, WeakCredentialError, DuplicateIdentifierError -> 400
    PersistenceError                                              -> 500
  Messages are the errors' own user-safe messages. Store internals never
  reach the response body.

Security:
  /login and /register are rate-limited per IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT). Login responses carry Cache-Control: no-store and
  one generic failure message for unknown email and wrong password alike.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, RegisterRequest, RegisterResponse
from auth.dependencies import get_current_principal
from auth.errors import PersistenceError, RegistrationError
from auth.models import CredentialRecord
from auth.registration import RegistrationService
from auth.tokens import authenticate, create_access_token, set_auth_cookie
from core.config import get_settings

_settings = get_settings()

router = APIRouter()


@limiter.limit(_settings.register_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a new customer.

    Sync handler: hashing and the breach-oracle call block, so FastAPI runs
    this in the thread pool.
    """
    service: RegistrationService = request.app.state.registration_service
    try:
        record = service.register(body.email, body.pwd)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=500,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    except RegistrationError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    return RegisterResponse.from_record(record)


@limiter.limit(_settings.login_rate_limit)
@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a token and set the cookie.

    Uses authenticate(), which equalizes timing for unknown emails. Do NOT
    inline find_by_identifier() + verify() here.
    """
    user = authenticate(
        request.app.state.credential_store,
        request.app.state.credential_service,
        body.email,
        body.pwd,
    )
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = create_access_token(user.identifier, user.role)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            expires_in=_settings.token_expire_seconds,
            email=user.identifier,
            role=user.role,
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout")
async def logout() -> JSONResponse:
    """Clear the token cookie. Tokens are stateless; nothing is revoked server-side."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.get("/me", response_model=MeResponse)
async def me(principal: CredentialRecord = Depends(get_current_principal)) -> MeResponse:
    return MeResponse(id=principal.id, email=principal.identifier, role=principal.role)
