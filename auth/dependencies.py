"""
auth/dependencies.py -- Credential resolution for incoming requests.

Three credential forms are checked in priority order:
  1. JWT cookie ("access_token") -- set by POST /login.
  2. Authorization: Bearer <token> -- API clients holding a token.
  3. Authorization: Basic <base64(email:password)> -- verified against the
     store on every request, as HTTP Basic always is.

All three converge on a CredentialRecord.

try_get_principal() is the resolver the access-control middleware calls when
the engine answers REQUIRES_AUTH. It runs bcrypt for Basic credentials, so the
middleware calls it through the thread pool.

get_current_principal() is the FastAPI dependency for route handlers. The
middleware has already authenticated the request by the time a handler runs;
the dependency only hands over what it stored on request.state.

Layer rule: auth/dependencies.py may import from fastapi (Request,
HTTPException) because it is part of the dependency injection system. No
imports from api/.
"""

from __future__ import annotations

import base64
import binascii

from fastapi import HTTPException, Request

from auth.models import CredentialRecord
from auth.tokens import authenticate, decode_access_token


def parse_basic_credentials(header: str) -> tuple[str, str] | None:
    """Return (identifier, password) from a Basic Authorization header, or None."""
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    identifier, sep, password = decoded.partition(":")
    if not sep:
        return None
    return identifier, password


def try_get_principal(request: Request) -> CredentialRecord | None:
    """Resolve the request's credential to a stored record. Never raises on bad input.

    Returns None when no credential was presented or none of the presented
    credentials verify.
    """
    store = request.app.state.credential_store
    credentials = request.app.state.credential_service
    auth_header = request.headers.get("Authorization", "")

    # 1. Cookie, 2. Bearer header
    token: str | None = request.cookies.get("access_token")
    if not token and auth_header[:7].lower() == "bearer ":
        token = auth_header[7:].strip()

    if token:
        payload = decode_access_token(token)
        if payload:
            record = store.find_by_identifier(payload["sub"])
            if record is not None:
                return record

    # 3. HTTP Basic
    basic = parse_basic_credentials(auth_header) if auth_header else None
    if basic is not None:
        identifier, password = basic
        return authenticate(store, credentials, identifier, password)

    return None


def get_current_principal(request: Request) -> CredentialRecord:
    """Return the principal authenticated by the access-control middleware.

    Use as a FastAPI dependency:
        @router.get("/myAccount")
        async def route(principal: CredentialRecord = Depends(get_current_principal)): ...

    Raises HTTP 401 if the route was reached without authentication -- that
    only happens when a route is served under a PUBLIC rule but still asks
    for a principal, which is a configuration mistake worth surfacing.
    """
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": 'Basic realm="gatehouse"'},
        )
    return principal
