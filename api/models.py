"""
API request and response models for TokenGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are Optional on purpose: a missing username or password must
reach AccountService so it can answer 400 "missing_fields" rather than
FastAPI's generic 422. Password length limits (including bcrypt's 72-byte
ceiling) are enforced there for the same reason. Login carries no length
limits at all, so every bad credential ends in the same 401.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account, Claims, IssuedToken

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Body for POST /register."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Body for POST /login."""

    username: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountView(BaseModel):
    """Public account view. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account, include_created_at: bool = True) -> "AccountView":
        return cls(**account.public_view(include_created_at=include_created_at))


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User registered successfully"
    user: AccountView


class TokenResponse(BaseModel):
    """Token half of the login and refresh responses."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
    expires_at: datetime
    expires_in: int

    @classmethod
    def from_issued(cls, issued: IssuedToken, message: str, **extra) -> "TokenResponse":
        return cls(
            message=message,
            token=issued.token,
            expires_at=issued.expires_at,
            expires_in=issued.expires_in,
            **extra,
        )


class LoginResponse(TokenResponse):
    message: str = "Login successful"
    user: AccountView


class ClaimsView(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    role: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_claims(cls, claims: Claims) -> "ClaimsView":
        return cls(
            user_id=claims.user_id,
            username=claims.username,
            role=claims.role,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
        )


class ProtectedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Access granted to protected resource"
    data: ClaimsView
    timestamp: datetime


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: AccountView


class UsersResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[AccountView]


class AdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Admin access granted"
    data: UsersResponse


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

    status: str = "healthy"
    version: str
    timestamp: datetime
    components: dict[str, str] = Field(default_factory=dict)


class EndpointInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    auth: str = "public"
    body: Optional[dict[str, str]] = None


class ApiIndexResponse(BaseModel):
    """Response for GET /api -- a hand-written endpoint index."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    endpoints: dict[str, EndpointInfo]
