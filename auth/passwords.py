"""
auth/passwords.py -- Password hashing primitive (bcrypt, direct usage).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

DUMMY_HASH enables timing equalization in credentials.authorize(): bcrypt is
always run, even when there is no stored hash to compare against.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    input length (Pydantic max_length), which keeps inputs below that limit.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        # Malformed stored hash counts as a mismatch.
        return False


# Computed once at import so the first login attempt is not measurably slower
# than subsequent ones.
DUMMY_HASH: str = hash_password("authbridge_timing_dummy")
