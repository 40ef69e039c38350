"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, linker, and issuer do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class LinkOutcome(str, Enum):
    """What link_or_create() did to the store."""

    CREATED = "created"
    LINKED = "linked"
    UNCHANGED = "unchanged"


@dataclass
class User:
    """The canonical identity record, keyed by email.

    email is the only key used to reconcile the credential and OAuth paths,
    so one address can authenticate through either.

    hashed_password is None for OAuth-only users, and is also None on every
    record returned by the default read paths -- only
    UserStore.find_by_email_with_secret() populates it.

    external_provider_id is set at most once: the first provider to link wins.
    """

    email: str
    first_name: str
    last_name: str
    role: str = Role.USER.value
    id: int | None = None
    hashed_password: str | None = None
    avatar_url: str | None = None
    external_provider_id: str | None = None
    created_at: str | None = None


@dataclass
class UserDraft:
    """Fields supplied by the caller when creating a user."""

    email: str
    first_name: str
    last_name: str
    role: str = Role.USER.value
    hashed_password: str | None = None
    avatar_url: str | None = None
    external_provider_id: str | None = None


@dataclass(frozen=True)
class ExternalIdentity:
    """A verified profile handed back by an OAuth provider."""

    provider: str  # "github", "google", "oidc"
    external_id: str  # provider's stable user ID
    email: str
    display_name: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True)
class SessionClaims:
    """The minimal authorization payload carried by a session token."""

    subject_id: int
    role: str


@dataclass(frozen=True)
class LinkResult:
    outcome: LinkOutcome
    user: User
