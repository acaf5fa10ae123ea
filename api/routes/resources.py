"""
api/routes/resources.py -- Bearer-protected resources.

Routes:
  GET /protected         -- any valid token; echoes the verified claims
  GET /profile           -- the caller's own account record
  GET /users/{user_id}   -- one account; owner or admin
  GET /users             -- all accounts ordered by id (admin only)
  GET /admin             -- admin landing payload with the account list (admin only)

Order of checks on admin routes: guard first (401 no/bad header, 403
forbidden for bad tokens), then role policy (403 forbidden_role).
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.models import AccountView, AdminResponse, ClaimsView, ProfileResponse, ProtectedResponse, UsersResponse
from auth.dependencies import get_account_service, get_current_claims, require_admin
from auth.models import Claims
from auth.policy import OWNER_OR_ADMIN, enforce
from auth.service import AccountService

router = APIRouter()


@router.get("/protected", response_model=ProtectedResponse)
def protected(claims: Claims = Depends(get_current_claims)) -> ProtectedResponse:
    return ProtectedResponse(data=ClaimsView.from_claims(claims), timestamp=datetime.now(timezone.utc))


@router.get("/profile", response_model=ProfileResponse)
def profile(
    claims: Claims = Depends(get_current_claims),
    service: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """Return the caller's account. 404 if the account behind a valid token is gone."""
    return ProfileResponse(user=AccountView.from_account(service.profile(claims)))


@router.get("/users", response_model=UsersResponse)
def list_users(
    claims: Claims = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> UsersResponse:
    """List all accounts. Admin only."""
    return UsersResponse(users=[AccountView.from_account(a) for a in service.list_accounts(claims)])


@router.get("/users/{user_id}", response_model=ProfileResponse)
def get_user(
    user_id: int,
    claims: Claims = Depends(get_current_claims),
    service: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """Return one account. Callers may read their own record; admins may read any."""
    enforce(OWNER_OR_ADMIN, claims, owner_id=user_id)
    return ProfileResponse(user=AccountView.from_account(service.get_account(user_id)))


@router.get("/admin", response_model=AdminResponse, response_model_exclude_none=True)
def admin(
    claims: Claims = Depends(require_admin),
    service: AccountService = Depends(get_account_service),
) -> AdminResponse:
    users = [AccountView.from_account(a, include_created_at=False) for a in service.list_accounts(claims)]
    return AdminResponse(data=UsersResponse(users=users))
