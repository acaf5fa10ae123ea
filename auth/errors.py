"""
auth/errors.py -- Typed failures raised by the credential and token core.

Every error carries a machine-readable `code`, a human `message` that is safe
to show to the caller, and the HTTP `status_code` the API layer should use.
The API registers a single exception handler for AuthError, so route code
raises these directly instead of building HTTPException payloads.

Oracle resistance:
  TokenError subclasses keep their specific `reason` for logs and tests, but
  all of them share the public code "forbidden" and one message. A caller
  cannot tell an expired token from a forged one.

  AuthenticationError is raised for both unknown user and wrong password
  with the same code and message [C1].

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every failure the auth core reports to a caller."""

    code: str = "auth_error"
    message: str = "Authentication error."
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Input validation (400)
# ---------------------------------------------------------------------------


class ValidationError(AuthError):
    code = "validation_error"
    message = "Invalid input."
    status_code = 400


class MissingFieldsError(ValidationError):
    code = "missing_fields"
    message = "Username and password are required."


class UsernameTooShortError(ValidationError):
    code = "username_too_short"
    message = "Username must be at least 3 characters long."


class PasswordTooShortError(ValidationError):
    code = "password_too_short"
    message = "Password must be at least 6 characters long."


class PasswordTooLongError(ValidationError):
    code = "password_too_long"
    message = "Password must be at most 72 bytes when UTF-8 encoded."


# ---------------------------------------------------------------------------
# Store outcomes
# ---------------------------------------------------------------------------


class ConflictError(AuthError):
    code = "conflict"
    message = "A user with this username already exists."
    status_code = 409


class NotFoundError(AuthError):
    code = "not_found"
    message = "User not found."
    status_code = 404


class StorageError(AuthError):
    """The credential store could not complete a read or write.

    The failed operation was rolled back; previously committed accounts are
    unaffected.
    """

    code = "storage_error"
    message = "The account store is unavailable."
    status_code = 500


# ---------------------------------------------------------------------------
# Authentication (401)
# ---------------------------------------------------------------------------


class AuthenticationError(AuthError):
    code = "invalid_credentials"
    message = "Invalid username or password."
    status_code = 401


class UnauthenticatedError(AuthError):
    """No usable Authorization header: absent, wrong scheme, or wrong shape."""

    code = "unauthenticated"
    message = "Authentication required. Use: Authorization: Bearer <token>"
    status_code = 401


# ---------------------------------------------------------------------------
# Token verification (403)
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    code = "forbidden"
    message = "Invalid or expired token."
    status_code = 403
    reason: str = "invalid"


class ExpiredTokenError(TokenError):
    reason = "expired"


class InvalidSignatureError(TokenError):
    reason = "invalid_signature"


class MalformedTokenError(TokenError):
    reason = "malformed"


# ---------------------------------------------------------------------------
# Authorization (403, caller is authenticated)
# ---------------------------------------------------------------------------


class AuthorizationError(AuthError):
    code = "forbidden_role"
    message = "Insufficient role for this resource."
    status_code = 403


# ---------------------------------------------------------------------------
# Hash format
# ---------------------------------------------------------------------------


class InvalidCredentialFormat(ValueError):
    """A stored password hash is not a parseable bcrypt hash.

    Callers must treat this exactly like a failed password comparison.
    """
