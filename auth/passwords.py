"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.
Direct bcrypt usage has no compatibility shim and is actively maintained.

Passwords longer than 72 bytes would be truncated by bcrypt. Registration
rejects them with PasswordTooLongError before hashing; hash() refuses them
with ValueError, and verify() returns False for them after the same bcrypt
work as any other mismatch.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import InvalidCredentialFormat

DEFAULT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(plaintext: str) -> bytes:
    data = plaintext.encode("utf-8")
    if len(data) > _BCRYPT_MAX_BYTES:
        raise ValueError("Password exceeds bcrypt's 72-byte limit.")
    return data


class PasswordHasher:
    """Salted one-way hashing with an adjustable work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("secret1")
        hasher.verify("secret1", stored)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31.")
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        """Return a bcrypt hash; a fresh random salt is drawn on every call."""
        return bcrypt.hashpw(_encode(plaintext), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Return True if plaintext matches password_hash.

        bcrypt.checkpw re-derives the hash with the stored salt and compares
        in constant time. A hash bcrypt cannot parse raises
        InvalidCredentialFormat; callers must treat that as a mismatch.
        """
        if not password_hash:
            raise InvalidCredentialFormat("Empty password hash.")
        try:
            candidate = _encode(plaintext)
        except ValueError:
            # Over-long input can never match a stored hash. Still burn the
            # same bcrypt work so rejection time does not depend on length.
            bcrypt.checkpw(b"", self.dummy_hash.encode("utf-8"))
            return False
        try:
            return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))
        except ValueError as exc:
            raise InvalidCredentialFormat("Stored password hash is not a valid bcrypt hash.") from exc

    @property
    def dummy_hash(self) -> str:
        """A real hash at this hasher's cost, computed once.

        Verified against when a login names an unknown user so that the
        response takes as long as a wrong-password attempt [C1].
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("tokengate_timing_dummy")
        return self._dummy_hash
