"""auth/claims.py -- Derive session claims from an authenticated user."""

from __future__ import annotations

from auth.models import SessionClaims, User


def derive_claims(user: User) -> SessionClaims:
    """Return the claim set carried by a session token: subject id and role.

    Pure. Works the same for users from either login path.
    """
    return SessionClaims(subject_id=user.id, role=user.role)
