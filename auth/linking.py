"""
auth/linking.py -- Resolve a verified OAuth identity onto a local user.

link_or_create() is keyed by email and returns a tagged LinkResult so callers
and tests can assert on what happened rather than on side effects:

  CREATED    no user had this email; one was created with the provider's
             external id already attached and no password.
  LINKED     an existing user had no external_provider_id; it was set.
  UNCHANGED  the user already had an external_provider_id. Nothing written,
             even if the incoming id is different -- the first provider to
             link keeps the linkage.

Sync policy:
  - role is never touched here. New users always start as "user".
  - names and avatar are only written at creation.

Race handling:
  There is no in-process lock. Two first logins for the same new email both
  miss the lookup and both try to INSERT; UNIQUE(email) lets exactly one win.
  The loser gets DuplicateEmail and retries once as lookup-then-link. The link
  UPDATE itself is guarded by "external_provider_id IS NULL", so a concurrent
  linker that loses re-reads the row and reports UNCHANGED.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import dataclasses
import logging

from auth.errors import DuplicateEmail, MissingInput, StoreUnavailable
from auth.models import ExternalIdentity, LinkOutcome, LinkResult, Role, User, UserDraft
from auth.store import UserStore

logger = logging.getLogger("authbridge.auth.linking")

_FALLBACK_FIRST_NAME = "Unknown"
_FALLBACK_LAST_NAME = "User"


def split_display_name(display_name: str | None) -> tuple[str, str]:
    """Split a provider display name into (first_name, last_name).

    The first whitespace run is the boundary: "Ada King Lovelace" becomes
    ("Ada", "King Lovelace"). A single token gets "User" as last name; a
    missing or blank name gets ("Unknown", "User").
    """
    parts = (display_name or "").strip().split(None, 1)
    if not parts:
        return _FALLBACK_FIRST_NAME, _FALLBACK_LAST_NAME
    first = parts[0]
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last or _FALLBACK_LAST_NAME


def link_or_create(store: UserStore, identity: ExternalIdentity) -> LinkResult:
    """Find or create the user for an OAuth identity and attach the linkage.

    Idempotent: once the first call has run, identical calls are read-only
    and return UNCHANGED with the same user id.

    Raises:
        MissingInput:     identity has no email or external id.
        StoreUnavailable: the store failed or timed out.
    """
    if not identity.email or not identity.external_id:
        raise MissingInput("OAuth identity must carry an email and an external id.")

    user = store.find_by_email(identity.email)
    if user is None:
        first_name, last_name = split_display_name(identity.display_name)
        draft = UserDraft(
            email=identity.email,
            first_name=first_name,
            last_name=last_name,
            role=Role.USER.value,
            avatar_url=identity.avatar_url,
            external_provider_id=identity.external_id,
        )
        try:
            created = store.create(draft)
        except DuplicateEmail:
            # Lost the race to a concurrent first login. Retry as a lookup.
            logger.warning("OAuth (%s): concurrent create detected, retrying as lookup", identity.provider)
            user = store.find_by_email(identity.email)
            if user is None:
                raise StoreUnavailable("User missing after duplicate-email conflict.") from None
        else:
            logger.info("OAuth (%s): created user %s", identity.provider, created.id)
            return LinkResult(LinkOutcome.CREATED, created)

    return _link_existing(store, user, identity)


def _link_existing(store: UserStore, user: User, identity: ExternalIdentity) -> LinkResult:
    if user.external_provider_id is not None:
        if user.external_provider_id != identity.external_id:
            logger.info(
                "OAuth (%s): user %s already linked to another external id; keeping existing linkage",
                identity.provider,
                user.id,
            )
        return LinkResult(LinkOutcome.UNCHANGED, user)

    if store.update_external_provider_id(user.email, identity.external_id):
        logger.info("OAuth (%s): linked external id to existing user %s", identity.provider, user.id)
        return LinkResult(LinkOutcome.LINKED, dataclasses.replace(user, external_provider_id=identity.external_id))

    # Someone else linked between our read and our write.
    current = store.find_by_email(user.email)
    return LinkResult(LinkOutcome.UNCHANGED, current or user)
