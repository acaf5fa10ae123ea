"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these types only own domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass
class Account:
    """A persisted identity.

    password_hash is the bcrypt output, never the plaintext. The public view
    (public_view()) is what leaves the process; password_hash never does.
    """

    username: str
    password_hash: str
    role: str = Role.user.value
    id: int | None = None
    created_at: str | None = None

    def public_view(self, include_created_at: bool = True) -> dict:
        view = {"id": self.id, "username": self.username, "role": self.role}
        if include_created_at:
            view["created_at"] = self.created_at
        return view

    def __repr__(self) -> str:
        # Keep the hash out of logs and tracebacks.
        return f"Account(id={self.id!r}, username={self.username!r}, role={self.role!r})"


@dataclass(frozen=True)
class Claims:
    """The verified identity carried inside a bearer token.

    Frozen: claims are never modified after signing. issued_at / expires_at
    are timezone-aware UTC datetimes (second precision, as in the JWT).
    token_id is the JWT "jti" -- random per token.
    """

    user_id: int
    username: str
    role: str
    issued_at: datetime
    expires_at: datetime
    token_id: str = ""


@dataclass(frozen=True)
class IssuedToken:
    """Return value of TokenService.issue() / refresh()."""

    token: str
    expires_at: datetime
    claims: Claims

    @property
    def expires_in(self) -> int:
        return int((self.claims.expires_at - self.claims.issued_at).total_seconds())
