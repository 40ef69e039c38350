"""
auth/credentials.py -- Email/password authentication and registration.

authorize() collapses every mismatch into InvalidCredentials:
  - unknown email
  - user created through OAuth only (no stored hash)
  - wrong password
The three cases are logged at DEBUG with the reason, but the caller sees the
same exception type and message. bcrypt runs in all three cases (against
DUMMY_HASH when there is nothing real to compare) so response time does not
reveal whether the email exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import dataclasses
import logging

from auth.errors import InvalidCredentials, MissingInput
from auth.models import Role, User, UserDraft
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore

logger = logging.getLogger("authbridge.auth.credentials")

_FALLBACK_FIRST_NAME = "Unknown"
_FALLBACK_LAST_NAME = "User"


def authorize(store: UserStore, email: str | None, password: str | None) -> User:
    """Verify an email/password pair and return the matching user.

    Raises:
        MissingInput:       email or password is absent or empty. Checked
                            before any store access.
        InvalidCredentials: no such user, OAuth-only user, or wrong password.
        StoreUnavailable:   the store could not be reached in time.

    The returned User never carries hashed_password.
    """
    if not email or not password:
        raise MissingInput("Email and password are required.")

    user = store.find_by_email_with_secret(email)
    if user is None or user.hashed_password is None:
        # Equalize timing -- do NOT return early before running bcrypt.
        verify_password(password, DUMMY_HASH)
        logger.debug("Credential login rejected: %s", "unknown email" if user is None else "no password set")
        raise InvalidCredentials()

    if not verify_password(password, user.hashed_password):
        logger.debug("Credential login rejected: password mismatch for user %s", user.id)
        raise InvalidCredentials()

    return dataclasses.replace(user, hashed_password=None)


def register(
    store: UserStore,
    email: str | None,
    password: str | None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Create a credential-path user with role "user".

    Raises MissingInput for an empty email or password and DuplicateEmail when
    the address is already taken -- including by an OAuth-only user.
    """
    if not email or not password:
        raise MissingInput("Email and password are required.")

    draft = UserDraft(
        email=email,
        first_name=(first_name or "").strip() or _FALLBACK_FIRST_NAME,
        last_name=(last_name or "").strip() or _FALLBACK_LAST_NAME,
        role=Role.USER.value,
        hashed_password=hash_password(password),
    )
    user = store.create(draft)
    logger.info("Registered credential user %s", user.id)
    return user
