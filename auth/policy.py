"""
auth/policy.py -- Role-based authorization over verified claims.

Policies are small objects with evaluate(claims, owner_id) -> Decision.
They compose with the boolean operators, so new rules are built from
existing ones without editing them:

    OWNER_OR_ADMIN = IsOwner() | HasRole("admin")
    enforce(OWNER_OR_ADMIN, claims, owner_id=account.id)

A deny raises AuthorizationError (403 "forbidden_role"), which callers can
tell apart from the guard's UnauthenticatedError (401) and TokenError
(403 "forbidden").

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from enum import Enum

from auth.errors import AuthorizationError
from auth.models import Claims, Role

logger = logging.getLogger("tokengate.auth")


class Decision(str, Enum):
    allow = "allow"
    deny = "deny"

    def __bool__(self) -> bool:
        return self is Decision.allow


def _decide(allowed: bool) -> Decision:
    return Decision.allow if allowed else Decision.deny


class Policy:
    """Base class. Subclasses implement evaluate()."""

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        raise NotImplementedError

    def __and__(self, other: Policy) -> Policy:
        return AllOf(self, other)

    def __or__(self, other: Policy) -> Policy:
        return AnyOf(self, other)

    def __invert__(self) -> Policy:
        return Not(self)


class HasRole(Policy):
    def __init__(self, role: str | Role) -> None:
        self.role = role.value if isinstance(role, Role) else role

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        role = getattr(claims, "role", None)
        return _decide(isinstance(role, str) and role == self.role)

    def __repr__(self) -> str:
        return f"HasRole({self.role!r})"


class IsOwner(Policy):
    """Allows when the caller's user_id equals the resource's owner_id."""

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        user_id = getattr(claims, "user_id", None)
        return _decide(owner_id is not None and user_id is not None and user_id == owner_id)

    def __repr__(self) -> str:
        return "IsOwner()"


class AllOf(Policy):
    def __init__(self, *policies: Policy) -> None:
        self.policies = policies

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        return _decide(all(p.evaluate(claims, owner_id) for p in self.policies))

    def __repr__(self) -> str:
        return " & ".join(repr(p) for p in self.policies)


class AnyOf(Policy):
    def __init__(self, *policies: Policy) -> None:
        self.policies = policies

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        return _decide(any(p.evaluate(claims, owner_id) for p in self.policies))

    def __repr__(self) -> str:
        return " | ".join(repr(p) for p in self.policies)


class Not(Policy):
    def __init__(self, policy: Policy) -> None:
        self.policy = policy

    def evaluate(self, claims: Claims | None, owner_id: int | None = None) -> Decision:
        return _decide(not self.policy.evaluate(claims, owner_id))

    def __repr__(self) -> str:
        return f"~{self.policy!r}"


ADMIN_ONLY = HasRole(Role.admin)
OWNER_OR_ADMIN = IsOwner() | HasRole(Role.admin)


def require_role(claims: Claims | None, role: str | Role) -> Decision:
    """Equality check claims.role == role. Absent claims or a non-string role deny."""
    return HasRole(role).evaluate(claims)


def enforce(policy: Policy, claims: Claims | None, owner_id: int | None = None) -> None:
    """Raise AuthorizationError unless policy allows."""
    if not policy.evaluate(claims, owner_id):
        logger.info(
            "Authorization denied user=%r policy=%r",
            getattr(claims, "username", None),
            policy,
        )
        raise AuthorizationError()
