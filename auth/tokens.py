"""
auth/tokens.py -- JWT issuance, verification and refresh.

Security design decisions:
  JWT: python-jose with HS256 only. Tokens carry sub (username), user_id,
       role, iat, exp and a random jti. The jti makes every token unique even
       when two are issued for the same identity within one second.

  Algorithm pinning: the header "alg" must be exactly HS256 before any
       signature work happens, and jose.jwt.decode() is called with
       algorithms=["HS256"]. "none", RS256-with-HMAC-key and any other
       substitution are rejected as invalid signatures.

  Verification order: structure -> algorithm -> signature -> claim shape ->
       expiry. No claim is trusted until the signature over the exact
       transmitted bytes has been checked. Expiry is evaluated with the
       service's injected clock (jose's own exp check is disabled) so tests
       can move time without sleeping.

  Errors: verify() raises a TokenError subclass. The subclass is for logs and
       tests; the API renders all of them identically.

  Secret key: injected by the caller (core.config.Settings in production).
       Nothing in this module reads the environment.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode

from auth.errors import ExpiredTokenError, InvalidSignatureError, MalformedTokenError
from auth.models import Claims, IssuedToken

logger = logging.getLogger("tokengate.auth")

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _split_segments(token: str) -> tuple[dict, dict]:
    """Decode header and payload without trusting them.

    Only used to classify structural damage as "malformed" instead of
    "invalid signature". Nothing returned here is used as an identity.
    """
    if not isinstance(token, str) or token.count(".") != 2:
        raise MalformedTokenError()
    header_seg, payload_seg, signature_seg = token.split(".")
    if not header_seg or not payload_seg or not signature_seg:
        raise MalformedTokenError()
    try:
        header = json.loads(base64url_decode(header_seg.encode("ascii")))
        payload = json.loads(base64url_decode(payload_seg.encode("ascii")))
        base64url_decode(signature_seg.encode("ascii"))
    except (ValueError, UnicodeError, TypeError) as exc:
        raise MalformedTokenError() from exc
    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise MalformedTokenError()
    return header, payload


def _claims_from_payload(payload: dict) -> Claims:
    user_id = payload.get("user_id")
    username = payload.get("sub")
    role = payload.get("role")
    iat = payload.get("iat")
    exp = payload.get("exp")
    jti = payload.get("jti", "")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise MalformedTokenError()
    if not isinstance(username, str) or not username:
        raise MalformedTokenError()
    if not isinstance(role, str):
        raise MalformedTokenError()
    if not isinstance(iat, (int, float)) or not isinstance(exp, (int, float)):
        raise MalformedTokenError()
    if not isinstance(jti, str):
        raise MalformedTokenError()
    return Claims(
        user_id=user_id,
        username=username,
        role=role,
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        token_id=jti,
    )


class TokenService:
    """Issues and verifies HS256 bearer tokens. Stateless and thread-safe.

    Usage:
        tokens = TokenService(secret_key=settings.secret_key, ttl_seconds=3600)
        issued = tokens.issue(1, "alice", "user")
        claims = tokens.verify(issued.token)
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        if ttl_seconds <= 0:
            raise ValueError("Token TTL must be greater than zero.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user_id: int, username: str, role: str) -> IssuedToken:
        """Sign a new token for the identity, valid for ttl_seconds from now."""
        # JWT NumericDate has second precision; keep Claims identical to the wire.
        issued_at = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=self.ttl_seconds)
        token_id = secrets.token_urlsafe(16)
        payload = {
            "sub": username,
            "user_id": user_id,
            "role": role,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": token_id,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        claims = Claims(
            user_id=user_id,
            username=username,
            role=role,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=token_id,
        )
        return IssuedToken(token=token, expires_at=expires_at, claims=claims)

    def refresh(self, claims: Claims) -> IssuedToken:
        """Re-issue for an identity that already passed verify().

        No password check: the only way to hold a Claims object from the wire
        is a successful verify().
        """
        return self.issue(claims.user_id, claims.username, claims.role)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str) -> Claims:
        """Return the signed claims or raise a TokenError subclass.

        Raises:
            MalformedTokenError:   not a three-segment JWT, or required claims
                                   missing / wrongly typed.
            InvalidSignatureError: wrong algorithm or signature mismatch.
            ExpiredTokenError:     signature valid but now > expires_at.
        """
        header, _ = _split_segments(token)
        if header.get("alg") != ALGORITHM:
            raise InvalidSignatureError()
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTClaimsError as exc:
            raise MalformedTokenError() from exc
        except JWTError as exc:
            raise InvalidSignatureError() from exc

        claims = _claims_from_payload(payload)
        if self._clock() > claims.expires_at:
            raise ExpiredTokenError()
        return claims
