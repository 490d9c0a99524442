"""
auth/tokens.py -- Password authentication and bearer token utilities.

Security design decisions:
  Authentication: authenticate() always runs one bcrypt verification, whether
       or not the identifier exists. Unknown identifiers are verified against
       the hasher's dummy hash so response time does not reveal which
       accounts exist.

       A stored hash that fails to parse (MalformedHashError) is a storage
       corruption signal, not a wrong password. It is logged at ERROR level
       and the login fails; it is never silently treated as a mismatch.

  Tokens: python-jose with HS256. Tokens carry the identifier (sub) and role
       plus expiry. They are stateless -- nothing is stored server-side, and a
       token is only honoured if its subject still exists in the store.
       Verification returns None on any failure; the caller turns that into
       a 401.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       refuses short keys and refuses to start without one outside DEBUG.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import MalformedHashError
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import CredentialRecord
    from auth.passwords import CredentialService
    from auth.store import CredentialRepository

logger = logging.getLogger("gatehouse.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate(
    store: CredentialRepository,
    credentials: CredentialService,
    identifier: str,
    password: str,
) -> CredentialRecord | None:
    """Verify identifier/password against the store with timing equalization.

    Returns the CredentialRecord on success, None on any failure.
    """
    record = store.find_by_identifier(identifier.strip().lower())
    if record is None:
        # Equalize timing -- do NOT return before running bcrypt
        credentials.equalize_timing(password)
        return None
    try:
        ok = credentials.verify(password, record.hash_encoded)
    except MalformedHashError:
        logger.error("Stored password hash for %s (id=%s) is malformed -- check storage", identifier, record.id)
        return None
    if not ok:
        return None
    if credentials.needs_rehash(record.hash_encoded):
        logger.warning(
            "Stored password hash for %s (id=%s) is below the configured bcrypt cost %d",
            record.identifier,
            record.id,
            credentials.hasher.cost,
        )
    return record


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(identifier: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT for identifier.

    If expire_seconds is 0 (default), Settings.token_expire_seconds is used.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": identifier,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
        if "sub" not in payload or "role" not in payload:
            return None
        return payload
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as an httpOnly cookie whose max_age matches the token expiry.

    samesite="lax" keeps the cookie off cross-site POSTs; secure is driven by
    SECURE_COOKIES so local development over plain HTTP still works.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )
