"""
API request and response models for SecretGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login and /api/v1/auth/register.

    max_length=72 keeps passwords under bcrypt's truncation threshold.
    Only the username is stripped; passwords are taken verbatim.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be blank")
        return value


class SecretSubmit(BaseModel):
    """Request body for PUT /api/v1/secrets/me."""

    secret: str = Field(min_length=1, max_length=10_000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Returned by a successful login or registration.

    access_token is the same opaque session payload that is set as the
    session cookie; API clients send it back as a Bearer token.
    """

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int
    username: Optional[str] = None


class MeResponse(BaseModel):
    user_id: int
    username: Optional[str] = None
    federated_provider: Optional[str] = None
    has_local_credentials: bool
    has_secret: bool


class ProviderInfo(BaseModel):
    name: str
    label: str


class SecretRow(BaseModel):
    """One entry of the public secrets list. Carries no credential material."""

    user_id: int
    username: Optional[str] = None
    secret: str


class LogoutResponse(BaseModel):
    message: str
    warning: Optional[str] = None


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
    components: dict[str, str]
