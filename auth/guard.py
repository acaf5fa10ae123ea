"""
auth/guard.py -- Bearer-token gate in front of protected operations.

Per-request state machine:

    no header                               -> UNAUTHENTICATED  (401)
    header, not exactly "Bearer <token>"    -> UNAUTHENTICATED  (401)
    bearer, verify() raises ExpiredTokenError -> FORBIDDEN, reason "expired"
    bearer, verify() raises other TokenError  -> FORBIDDEN, reason "invalid_signature"/"malformed"
    bearer, verify() succeeds               -> AUTHENTICATED(claims)

evaluate() never raises and returns a GuardResult for callers that want to
branch on the outcome. authenticate() raises the typed error instead and is
what the FastAPI dependency uses.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from auth.errors import AuthError, TokenError, UnauthenticatedError
from auth.models import Claims
from auth.tokens import TokenService

logger = logging.getLogger("tokengate.auth")

BEARER_SCHEME = "Bearer"


class GuardState(str, Enum):
    authenticated = "authenticated"
    unauthenticated = "unauthenticated"
    forbidden = "forbidden"


@dataclass(frozen=True)
class GuardResult:
    state: GuardState
    claims: Claims | None = None
    error: AuthError | None = None

    @property
    def reason(self) -> str | None:
        """Internal failure reason ("expired", "malformed", ...) for logs and tests."""
        if isinstance(self.error, TokenError):
            return self.error.reason
        if self.error is not None:
            return self.error.code
        return None


def parse_bearer(header: str | None) -> str:
    """Return the token from an Authorization header value.

    Accepts exactly two whitespace-separated parts with the scheme spelled
    "Bearer". Anything else raises UnauthenticatedError.
    """
    if not header:
        raise UnauthenticatedError("No authorization header provided.")
    parts = header.split()
    if len(parts) != 2 or parts[0] != BEARER_SCHEME:
        raise UnauthenticatedError("Invalid authorization header format. Use: Bearer <token>")
    return parts[1]


class AuthGuard:
    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens

    def authenticate(self, header: str | None) -> Claims:
        """Return verified claims or raise UnauthenticatedError / TokenError."""
        token = parse_bearer(header)
        try:
            return self._tokens.verify(token)
        except TokenError as exc:
            logger.info("Token rejected (%s)", exc.reason)
            raise

    def evaluate(self, header: str | None) -> GuardResult:
        try:
            claims = self.authenticate(header)
        except UnauthenticatedError as exc:
            return GuardResult(state=GuardState.unauthenticated, error=exc)
        except TokenError as exc:
            return GuardResult(state=GuardState.forbidden, error=exc)
        return GuardResult(state=GuardState.authenticated, claims=claims)
