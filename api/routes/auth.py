"""
api/routes/auth.py -- Registration, login and token refresh endpoints.

Routes:
  POST /register   -- create a "user" account; 201 with the public view
  POST /login      -- password login; returns a bearer token
  POST /refresh    -- re-issue a token for a valid bearer token

Security:
  [H2] POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] AccountService.login() provides timing equalization -- use it, never
       inline find_by_username() + verify().
  [M5] Cache-Control: no-store on every response that carries a token.

Handlers are plain `def` so bcrypt and SQLite work runs in FastAPI's thread
pool instead of blocking the event loop. Failures are raised as AuthError
and rendered by the handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, login_rate_limit
from api.models import AccountView, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, TokenResponse
from auth.dependencies import get_account_service, get_current_claims
from auth.models import Claims
from auth.service import AccountService

# Auth policy:
# - POST /register: public
# - POST /login:    public, rate limited
# - POST /refresh:  requires a valid bearer token (get_current_claims)
router = APIRouter()


@router.post("/register", response_model=RegisterResponse, response_model_exclude_none=True, status_code=201)
def register(
    body: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> RegisterResponse:
    """Create a new account with role "user"."""
    account = service.register(body.username, body.password)
    return RegisterResponse(user=AccountView.from_account(account, include_created_at=False))


@limiter.limit(login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> LoginResponse:
    """Authenticate with username and password; return a signed bearer token.

    Unknown username and wrong password produce the same 401
    "invalid_credentials" body.
    """
    result = service.login(body.username, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse.from_issued(
        result.issued,
        "Login successful",
        user=AccountView.from_account(result.account, include_created_at=False),
    )


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    response: Response,
    claims: Claims = Depends(get_current_claims),
    service: AccountService = Depends(get_account_service),
) -> TokenResponse:
    """Issue a fresh token (new issued_at / expires_at) for the bearer's identity."""
    issued = service.refresh(claims)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokenResponse.from_issued(issued, "Token refreshed successfully")
