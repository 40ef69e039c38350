"""Unit tests for auth/oauth.py -- provider profile normalization.

Covers:
- Google/OIDC userinfo -> ExternalIdentity (sub, email, name, picture)
- GitHub /user + /user/emails -> ExternalIdentity, primary verified email only
- unverified or missing emails raise ValueError
- get_enabled_providers() reflects configured client credentials
"""

from __future__ import annotations

import asyncio

import pytest

from auth.models import ExternalIdentity
from auth.oauth import get_enabled_providers, get_oauth_identity
from core.config import Settings


class _FakeResponse:
    def __init__(self, payload) -> None:
        self._payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self):
        return self._payload


class _FakeGitHubClient:
    """Minimal stand-in for an authlib client: answers the two GitHub API calls."""

    def __init__(self, profile: dict, emails: list[dict]) -> None:
        self._responses = {"user": profile, "user/emails": emails}

    async def get(self, path: str, token: dict) -> _FakeResponse:
        return _FakeResponse(self._responses[path])


class TestOidcIdentity:
    def test_google_userinfo(self) -> None:
        token = {
            "userinfo": {
                "sub": "1029384756",
                "email": "a@x.com",
                "email_verified": True,
                "name": "Ada Lovelace",
                "picture": "https://lh3.example/ada.png",
            }
        }
        identity = asyncio.run(get_oauth_identity(None, "google", token))
        assert identity == ExternalIdentity(
            provider="google",
            external_id="1029384756",
            email="a@x.com",
            display_name="Ada Lovelace",
            avatar_url="https://lh3.example/ada.png",
        )

    def test_optional_fields_absent(self) -> None:
        token = {"userinfo": {"sub": "s-1", "email": "a@x.com", "email_verified": True}}
        identity = asyncio.run(get_oauth_identity(None, "oidc", token))
        assert identity.provider == "oidc"
        assert identity.display_name is None
        assert identity.avatar_url is None

    @pytest.mark.parametrize(
        "userinfo",
        [
            {"sub": "s-1", "email": "a@x.com", "email_verified": False},
            {"sub": "s-1", "email": "a@x.com"},
            {"sub": "s-1", "email_verified": True},
            {"email": "a@x.com", "email_verified": True},
        ],
    )
    def test_rejects_unverified_or_incomplete(self, userinfo: dict) -> None:
        with pytest.raises(ValueError):
            asyncio.run(get_oauth_identity(None, "google", {"userinfo": userinfo}))

    def test_rejects_missing_userinfo(self) -> None:
        with pytest.raises(ValueError):
            asyncio.run(get_oauth_identity(None, "google", {}))


class TestGitHubIdentity:
    def test_primary_verified_email(self) -> None:
        client = _FakeGitHubClient(
            profile={"id": 583231, "login": "octocat", "name": "The Octocat", "avatar_url": "https://gh/a.png"},
            emails=[
                {"email": "old@x.com", "primary": False, "verified": True},
                {"email": "octo@x.com", "primary": True, "verified": True},
            ],
        )
        identity = asyncio.run(get_oauth_identity(client, "github", {"access_token": "t"}))
        assert identity.external_id == "583231"
        assert identity.email == "octo@x.com"
        assert identity.display_name == "The Octocat"
        assert identity.avatar_url == "https://gh/a.png"

    def test_login_used_when_name_unset(self) -> None:
        client = _FakeGitHubClient(
            profile={"id": 1, "login": "octocat", "name": None},
            emails=[{"email": "octo@x.com", "primary": True, "verified": True}],
        )
        identity = asyncio.run(get_oauth_identity(client, "github", {}))
        assert identity.display_name == "octocat"

    def test_rejects_unverified_primary(self) -> None:
        client = _FakeGitHubClient(
            profile={"id": 1, "login": "octocat"},
            emails=[{"email": "octo@x.com", "primary": True, "verified": False}],
        )
        with pytest.raises(ValueError):
            asyncio.run(get_oauth_identity(client, "github", {}))


def test_unknown_provider() -> None:
    with pytest.raises(ValueError):
        asyncio.run(get_oauth_identity(None, "myspace", {}))


class TestEnabledProviders:
    def test_only_configured_providers(self) -> None:
        cfg = Settings(
            _env_file=None,
            debug=True,
            github_client_id="id",
            github_client_secret="secret",
            google_client_id="",
            google_client_secret="",
        )
        assert get_enabled_providers(cfg) == [{"name": "github", "label": "GitHub"}]

    def test_oidc_needs_discovery_url(self) -> None:
        cfg = Settings(
            _env_file=None,
            debug=True,
            google_client_id="",
            google_client_secret="",
            oidc_client_id="id",
            oidc_client_secret="secret",
            oidc_display_name="Keycloak",
        )
        assert get_enabled_providers(cfg) == []
        cfg = cfg.model_copy(update={"oidc_discovery_url": "https://idp.example/.well-known/openid-configuration"})
        assert get_enabled_providers(cfg) == [{"name": "oidc", "label": "Keycloak"}]
