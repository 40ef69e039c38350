"""
API request and response models for AuthBridge REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Both fields default to "" so an absent field reaches the authenticator
    (and its generic failure) rather than a 422 that reveals which field was
    missing.
    """

    email: str = Field(default="", max_length=320)
    # Not stripped: leading/trailing whitespace is part of a password.
    password: str = Field(default="", max_length=255)

    @field_validator("email")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return value.strip()


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def strip_email(cls, value: str) -> str:
        return value.strip()


class RoleUpdateRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/users/{user_id}/role."""

    role: Literal["user", "admin"]


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for a successful password login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int
    role: str


class OAuthLoginResponse(LoginResponse):
    """Response for a completed OAuth callback. outcome is created/linked/unchanged."""

    outcome: str


class UserResponse(BaseModel):
    """A stored user as returned by registration and admin role changes."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    first_name: str
    last_name: str
    role: str


class SessionResponse(BaseModel):
    """Response for GET /api/v1/auth/me -- the claims embedded in the token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: str


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
