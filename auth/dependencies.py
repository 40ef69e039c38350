"""
auth/dependencies.py -- FastAPI Depends() helpers for session verification.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login/callback routes.
  2. Authorization: Bearer <token> header -- API clients.

Both converge on SessionClaims via the TokenIssuer held in app.state. The
user store is never consulted: the token alone authenticates the request.

try_get_session() is the soft variant (returns None on failure).
get_session() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_session() and raises HTTP 403 if not admin.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import TokenInvalid
from auth.models import Role, SessionClaims
from auth.tokens import TokenIssuer


def _extract_token(request: Request) -> str | None:
    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_session(request: Request) -> SessionClaims | None:
    """Verify the request's session token. Never raises.

    Returns the SessionClaims on success, None when no token is present or
    the token is expired, tampered, or malformed.
    """
    token = _extract_token(request)
    if token is None:
        return None
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        return issuer.verify(token)
    except TokenInvalid:
        return None


def get_session(request: Request) -> SessionClaims:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(session: SessionClaims = Depends(get_session)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return session


def require_admin(request: Request) -> SessionClaims:
    """Require the admin role. HTTP 401 if unauthenticated, 403 if not admin."""
    session = get_session(request)
    if session.role != Role.ADMIN.value:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return session
