"""
API request and response models for Gatehouse REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only bound sizes. Shape rules (e-mail format, password length)
live in auth.registration so the CLI and the API enforce the same policy and
violations come back as 400 with the registration error code.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import CredentialRecord

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register.

    Any "role" sent by the client is ignored -- new accounts always receive
    the configured default role.
    """

    model_config = ConfigDict(extra="ignore")

    email: str = Field(default="", max_length=320)
    pwd: str = Field(default="", max_length=1024)


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str = Field(min_length=1, max_length=320)
    pwd: str = Field(min_length=1, max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    """Response for a successful POST /register (HTTP 201). Never includes the hash."""

    model_config = ConfigDict(frozen=True)

    message: str = "Given user registered successfully"
    id: Optional[int]
    email: str
    role: str
    created_at: str

    @classmethod
    def from_record(cls, record: CredentialRecord) -> "RegisterResponse":
        return cls(
            id=record.id,
            email=record.identifier,
            role=record.role,
            created_at=record.created_at or "",
        )


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    email: str
    role: str


class MeResponse(BaseModel):
    """Identity of the authenticated caller."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int]
    email: str
    role: str


class AccountDataResponse(BaseModel):
    """Payload for the per-customer banking routes (/myAccount, /myBalance, ...)."""

    model_config = ConfigDict(frozen=True)

    email: str
    section: str
    details: dict[str, str | int | float] = Field(default_factory=dict)


class InfoResponse(BaseModel):
    """Payload for the public information routes (/notices, /contact)."""

    model_config = ConfigDict(frozen=True)

    section: str
    items: list[str]


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
