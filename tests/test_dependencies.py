"""Unit tests for auth/dependencies.py -- token extraction and role gates."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from auth.dependencies import get_session, require_admin, try_get_session
from auth.models import SessionClaims
from auth.tokens import TokenIssuer


def _request(issuer: TokenIssuer, cookie: str | None = None, bearer: str | None = None):
    headers = {"Authorization": f"Bearer {bearer}"} if bearer else {}
    cookies = {"access_token": cookie} if cookie else {}
    return SimpleNamespace(cookies=cookies, headers=headers, app=SimpleNamespace(state=SimpleNamespace(token_issuer=issuer)))


def test_cookie_wins_over_header(issuer: TokenIssuer) -> None:
    cookie = issuer.issue(SessionClaims(1, "user"))
    bearer = issuer.issue(SessionClaims(2, "admin"))
    assert try_get_session(_request(issuer, cookie=cookie, bearer=bearer)) == SessionClaims(1, "user")


def test_no_token_is_anonymous(issuer: TokenIssuer) -> None:
    assert try_get_session(_request(issuer)) is None
    with pytest.raises(HTTPException) as excinfo:
        get_session(_request(issuer))
    assert excinfo.value.status_code == 401


def test_require_admin(issuer: TokenIssuer) -> None:
    admin = issuer.issue(SessionClaims(1, "admin"))
    assert require_admin(_request(issuer, bearer=admin)).role == "admin"

    user = issuer.issue(SessionClaims(2, "user"))
    with pytest.raises(HTTPException) as excinfo:
        require_admin(_request(issuer, bearer=user))
    assert excinfo.value.status_code == 403
