"""
API request and response models for AccessAdmin REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

# Loose shape check only; the store enforces uniqueness and the controller
# normalizes case. Full RFC 5322 validation is not attempted.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Identity fields are stripped; passwords are taken exactly as sent.
StrippedStr = Annotated[str, StringConstraints(strip_whitespace=True)]

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: StrippedStr = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=72)
    display_name: StrippedStr = Field(min_length=1, max_length=255)


class LoginRequest(BaseModel):
    email: StrippedStr = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class RecoveryRequest(BaseModel):
    email: StrippedStr = Field(min_length=1, max_length=255)


class RecoveryConfirm(BaseModel):
    """Request body for POST /api/v1/auth/recovery/confirm."""

    token: str = Field(min_length=64, max_length=64)
    new_password: str = Field(min_length=1, max_length=72)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    message: str = "User registered."


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The same token is also set as a cookie."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: str
    expires_at: Optional[str] = None


class PermissionCheckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    permission: str
    granted: bool


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
