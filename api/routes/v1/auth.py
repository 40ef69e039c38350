"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register              -- create a credential user
  POST /api/v1/auth/login                 -- password login; sets JWT cookie
  POST /api/v1/auth/logout                -- clears cookie; 200
  GET  /api/v1/auth/me                    -- session view from the token (requires auth)
  PATCH /api/v1/auth/users/{id}/role      -- set a user's role (requires admin)
  GET  /api/v1/auth/providers             -- list enabled OAuth providers (public)
  GET  /api/v1/auth/oauth/{provider}      -- redirect to the provider (authlib)
  GET  /api/v1/auth/callback/{provider}   -- link-or-create, issue JWT cookie

Both login paths end the same way: a resolved User goes through
derive_claims() and TokenIssuer.issue(), and the token is returned in the
body and as an httpOnly cookie.

Security:
  authorize() provides timing equalization -- use it, never inline the lookup.
  Login failures (missing field, unknown email, OAuth-only account, wrong
  password) all produce the same 401 body. Registration failures likewise
  share one body. The specific reason is logged only.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.models import (
    LoginRequest,
    LoginResponse,
    OAuthLoginResponse,
    OAuthProviderInfo,
    RegisterRequest,
    RoleUpdateRequest,
    SessionResponse,
    UserResponse,
)
from auth.claims import derive_claims
from auth.credentials import authorize, register
from auth.dependencies import get_session, require_admin
from auth.errors import DuplicateEmail, InvalidCredentials, MissingInput
from auth.linking import link_or_create
from auth.models import Role, SessionClaims, User
from auth.oauth import get_enabled_providers, get_oauth_identity
from auth.store import UserStore
from auth.tokens import TokenIssuer, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("authbridge.api.auth")

# Auth policy:
# - POST /api/v1/auth/register:            public
# - POST /api/v1/auth/login:               public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:              public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/providers:           public -- clients render OAuth buttons from this
# - GET  /api/v1/auth/oauth/{provider}:    public
# - GET  /api/v1/auth/callback/{provider}: public (authlib verifies state)
# - GET  /api/v1/auth/me:                  requires auth (get_session)
# - PATCH /api/v1/auth/users/{id}/role:    requires admin (require_admin)
router = APIRouter()

_BAD_CREDENTIALS = {"code": "bad_credentials", "message": "Invalid email or password."}
_REGISTRATION_FAILED = {"code": "registration_failed", "message": "Registration could not be completed."}
_OAUTH_FAILED = {"code": "oauth_failed", "message": "OAuth authentication failed. Please try again."}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _issue_session(request: Request, body: LoginResponse) -> JSONResponse:
    """Serialize the login response and attach the session cookie."""
    issuer: TokenIssuer = request.app.state.token_issuer
    resp = JSONResponse(status_code=200, content=body.model_dump())
    set_auth_cookie(resp, body.access_token, max_age=issuer.expire_seconds, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
    )


def _require_enabled(provider: str) -> None:
    enabled = {p["name"] for p in get_enabled_providers()}
    if provider not in enabled:
        raise HTTPException(status_code=404, detail=_OAUTH_FAILED)


# ---------------------------------------------------------------------------
# Credential path
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register_user(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a credential-path account with role "user"."""
    user_store: UserStore = request.app.state.user_store
    try:
        user = register(user_store, body.email, body.password, body.first_name, body.last_name)
    except (MissingInput, DuplicateEmail) as exc:
        logger.info("Registration rejected: %s", exc.code)
        raise HTTPException(status_code=400, detail=_REGISTRATION_FAILED) from exc

    return _user_to_response(user)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set JWT cookie.

    Returns the same generic error for a missing field, unknown email,
    OAuth-only account, and wrong password.
    """
    user_store: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        user = authorize(user_store, body.email, body.password)
    except (MissingInput, InvalidCredentials) as exc:
        logger.info("Password login failed: %s", exc.code)
        resp = JSONResponse(status_code=401, content={"error": _BAD_CREDENTIALS})
        resp.headers["Cache-Control"] = "no-store"
        return resp

    claims = derive_claims(user)
    return _issue_session(
        request,
        LoginResponse(
            access_token=issuer.issue(claims),
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=issuer.expire_seconds,
            user_id=claims.subject_id,
            role=claims.role,
        ),
    )


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# Session view
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=SessionResponse)
async def me(session: SessionClaims = Depends(get_session)) -> SessionResponse:
    """Return the claims embedded in the caller's token. No store lookup."""
    return SessionResponse(user_id=session.subject_id, role=session.role)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.patch("/auth/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    request: Request,
    user_id: int,
    body: RoleUpdateRequest,
    session: SessionClaims = Depends(require_admin),
) -> UserResponse:
    """Set a user's role. Admin only.

    An admin cannot demote themselves, so the last admin cannot lock everyone
    out. Tokens already issued to the target keep their old role until the
    user logs in again.
    """
    user_store: UserStore = request.app.state.user_store

    if user_id == session.subject_id and body.role != Role.ADMIN.value:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_demotion", "message": "You cannot remove your own admin role."},
        )

    if not user_store.update_role(user_id, body.role):
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})

    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})
    logger.info("Admin %s set role of user %s to %s", session.subject_id, user_id, body.role)
    return _user_to_response(user)


# ---------------------------------------------------------------------------
# OAuth path
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty list if none are set."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers()]


@router.get("/auth/oauth/{provider}")
async def oauth_redirect(request: Request, provider: str):
    """Redirect the browser to the OAuth provider's authorization page.

    Validates the provider name against the enabled provider list before
    redirecting, so a spoofed provider name cannot select an arbitrary client.
    """
    _require_enabled(provider)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/callback/{provider}", response_model=OAuthLoginResponse, name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> JSONResponse:
    """Handle the OAuth provider callback and issue a JWT cookie.

    Flow:
      1. Exchange authorization code for token (authlib handles CSRF via session state).
      2. Normalize the provider profile -- raises ValueError if the email is unverified.
      3. link_or_create() resolves the identity onto a local user.
      4. Derive claims, issue JWT, set cookie.
    """
    _require_enabled(provider)
    user_store: UserStore = request.app.state.user_store
    issuer: TokenIssuer = request.app.state.token_issuer
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        raise HTTPException(status_code=401, detail=_OAUTH_FAILED) from None

    try:
        identity = await get_oauth_identity(client, provider, token)
    except ValueError:
        logger.warning("OAuth login rejected: unverified or missing email from %r", provider)
        raise HTTPException(status_code=401, detail=_OAUTH_FAILED) from None

    # Store calls may block up to store_timeout_seconds; keep them off the event loop.
    result = await run_in_threadpool(link_or_create, user_store, identity)
    claims = derive_claims(result.user)
    return _issue_session(
        request,
        OAuthLoginResponse(
            access_token=issuer.issue(claims),
            token_type="bearer",  # noqa: S106 # nosec B106
            expires_in=issuer.expire_seconds,
            user_id=claims.subject_id,
            role=claims.role,
            outcome=result.outcome.value,
        ),
    )
