"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one auth method exists: the Authorization: Bearer <token> header.

get_current_claims() runs the AuthGuard, stores the verified Claims on
request.state.claims and returns them. On failure it raises the guard's
typed AuthError (401 UnauthenticatedError or 403 TokenError) and the route
body never runs.
require_admin() wraps get_current_claims() and raises AuthorizationError
(403 forbidden_role) if the role is not admin.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
It does not import from api/ or core/.
"""

from __future__ import annotations

from fastapi import Request

from auth.guard import AuthGuard
from auth.models import Claims
from auth.policy import ADMIN_ONLY, enforce
from auth.service import AccountService


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_current_claims(request: Request) -> Claims:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: Claims = Depends(get_current_claims)): ...
    """
    guard: AuthGuard = request.app.state.auth_guard
    claims = guard.authenticate(request.headers.get("Authorization"))
    request.state.claims = claims
    return claims


def require_admin(request: Request) -> Claims:
    """Require admin role. 401/403 from the guard first, then 403 forbidden_role.

    Use as a FastAPI dependency:
        @router.get("/admin")
        def route(claims: Claims = Depends(require_admin)): ...
    """
    claims = get_current_claims(request)
    enforce(ADMIN_ONLY, claims)
    return claims
