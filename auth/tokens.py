"""
auth/tokens.py -- Session token issue/verify and the auth cookie helper.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the session claims (sub = user
       id, role) plus iat/exp. The secret is handed to TokenIssuer once at
       construction; nothing here reads the environment.

  SigningUnavailable: raised by the constructor when the secret is missing,
       blank, or shorter than 32 characters. The issuer is built during app
       startup, so a bad secret stops the process instead of failing
       per-request.

  TokenInvalid: verify() raises it for every failure -- bad signature,
       expiry, malformed token, missing or ill-typed claims. Callers cannot
       tell "expired" from "tampered"; both mean unauthenticated.

  No store access: the token is the sole source of truth for an
       authenticated request. A role change in the store is not visible
       until a new token is issued.

Layer rule: no imports from api/. Import from core/ is allowed (from_settings).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import SigningUnavailable, TokenInvalid
from auth.models import SessionClaims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authbridge.auth.tokens")

_ALGORITHM = "HS256"
_MIN_SECRET_LENGTH = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Signs SessionClaims into JWTs and reconstructs them on later requests.

    Usage:
        issuer = TokenIssuer(secret_key, expire_seconds=3600)
        token = issuer.issue(SessionClaims(subject_id=1, role="user"))
        claims = issuer.verify(token)   # raises TokenInvalid on any failure
    """

    def __init__(
        self,
        secret_key: str | None,
        expire_seconds: int = 3600,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key or not secret_key.strip():
            raise SigningUnavailable("Token signing secret is not configured.")
        if len(secret_key) < _MIN_SECRET_LENGTH:
            raise SigningUnavailable(f"Token signing secret must be at least {_MIN_SECRET_LENGTH} characters.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(settings.secret_key, expire_seconds=settings.token_expire_seconds)

    def issue(self, claims: SessionClaims, expire_seconds: int | None = None) -> str:
        """Encode and sign claims with issued-at and expiry metadata.

        Args:
            claims:         Subject id and role to carry.
            expire_seconds: Override the issuer's default session duration.
                            Must be positive when given.
        """
        if expire_seconds is not None and expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive")
        issued_at = self._clock()
        duration = self.expire_seconds if expire_seconds is None else expire_seconds
        payload = {
            "sub": str(claims.subject_id),
            "role": claims.role,
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=duration),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str | None) -> SessionClaims:
        """Check signature and expiry and return the embedded claims."""
        if not token:
            raise TokenInvalid()
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc.__class__.__name__)
            raise TokenInvalid() from None

        sub = payload.get("sub")
        role = payload.get("role")
        if not isinstance(sub, str) or not (sub.isascii() and sub.isdigit()) or not isinstance(role, str):
            logger.debug("Token rejected: missing or malformed claims")
            raise TokenInvalid()
        return SessionClaims(subject_id=int(sub), role=role)


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )
