"""
auth/service.py -- Account use cases: register, login, refresh, profile, listing.

AccountService is the only place that combines the store, the hasher and the
token service. Routes call it and map AuthError to HTTP; the CLI calls it
directly.

Security:
  [C1] login() always runs bcrypt exactly once, against the account's hash
       or the hasher's dummy hash when the username is unknown. Unknown user,
       wrong password and an unparseable stored hash all raise the same
       AuthenticationError.
  Plaintext passwords are never logged and never leave this module except
  as bcrypt input.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.errors import (
    AuthenticationError,
    ConflictError,
    InvalidCredentialFormat,
    MissingFieldsError,
    NotFoundError,
    PasswordTooLongError,
    PasswordTooShortError,
    UsernameTooShortError,
)
from auth.models import Account, Claims, IssuedToken, Role
from auth.passwords import PasswordHasher
from auth.policy import ADMIN_ONLY, enforce
from auth.store import AccountStore
from auth.tokens import TokenService

logger = logging.getLogger("tokengate.auth")

USERNAME_MIN_LEN = 3
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_BYTES = 72


@dataclass(frozen=True)
class LoginResult:
    issued: IssuedToken
    account: Account


def validate_registration(username: str | None, password: str | None) -> None:
    """Raise the specific ValidationError for bad registration input.

    Checks run in a fixed order: missing fields, then username length, then
    password length. The upper bound is bcrypt's 72-byte input limit, counted
    in UTF-8 bytes rather than characters.
    """
    if not username or not password:
        raise MissingFieldsError()
    if len(username) < USERNAME_MIN_LEN:
        raise UsernameTooShortError()
    if len(password) < PASSWORD_MIN_LEN:
        raise PasswordTooShortError()
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise PasswordTooLongError()


class AccountService:
    def __init__(self, store: AccountStore, hasher: PasswordHasher, tokens: TokenService) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens

    def register(self, username: str | None, password: str | None, role: str = Role.user.value) -> Account:
        """Create an account after validating input.

        HTTP self-registration always gets role "user"; only the CLI passes
        another role.

        Raises ValidationError subclasses, ConflictError, StorageError.
        """
        validate_registration(username, password)
        role = Role(role).value
        # Skips bcrypt for a known conflict; store.create() still decides.
        if self.store.find_by_username(username) is not None:
            logger.info("Registration conflict username=%r", username)
            raise ConflictError()
        password_hash = self.hasher.hash(password)
        try:
            return self.store.create(username, password_hash, role)
        except ConflictError:
            logger.info("Registration conflict username=%r", username)
            raise

    def login(self, username: str | None, password: str | None) -> LoginResult:
        """Verify credentials and issue a token.

        Raises MissingFieldsError or AuthenticationError.
        """
        if not username or not password:
            raise MissingFieldsError()
        account = self.store.find_by_username(username)
        stored_hash = account.password_hash if account is not None else self.hasher.dummy_hash
        try:
            matched = self.hasher.verify(password, stored_hash)
        except InvalidCredentialFormat:
            logger.error("Stored password hash for %r is not a valid bcrypt hash", username)
            matched = False
        if account is None or not matched:
            logger.info("Login failed username=%r", username)
            raise AuthenticationError()
        issued = self.tokens.issue(account.id, account.username, account.role)
        logger.info("Login succeeded username=%r role=%s", account.username, account.role)
        return LoginResult(issued=issued, account=account)

    def refresh(self, claims: Claims) -> IssuedToken:
        """Re-issue a token for claims that already passed AuthGuard."""
        issued = self.tokens.refresh(claims)
        logger.info("Token refreshed username=%r", claims.username)
        return issued

    def get_account(self, account_id: int) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise NotFoundError()
        return account

    def profile(self, claims: Claims) -> Account:
        return self.get_account(claims.user_id)

    def list_accounts(self, claims: Claims) -> list[Account]:
        """All accounts ordered by id. Admin only."""
        enforce(ADMIN_ONLY, claims)
        return self.store.list_all()
