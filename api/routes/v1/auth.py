"""
api/routes/v1/auth.py -- Account access REST endpoints.

Routes:
  POST /api/v1/auth/register            -- create an account (201); no token issued
  POST /api/v1/auth/login               -- password login; returns JWT and sets cookie
  POST /api/v1/auth/logout              -- clears cookie; 200
  POST /api/v1/auth/recovery            -- request a recovery link
  POST /api/v1/auth/recovery/confirm    -- consume a recovery token, set a new password
  GET  /api/v1/auth/me                  -- claims of the current session (requires auth)
  GET  /api/v1/auth/permissions/{perm}  -- does the current user hold perm? (requires auth)
  GET  /api/v1/auth/roles               -- list roles (requires roles.manage)

Error handling: handlers do not catch AccessError. The exception handler in
api/main.py maps each error .code to a status code, so no route inspects
exception messages.

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [M5] Cache-Control: no-store on login responses.
  The recovery endpoint never returns the recovery token; it goes to the
  notifier only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PermissionCheckResponse,
    RecoveryConfirm,
    RecoveryRequest,
    RegisterRequest,
    RegisterResponse,
)
from auth.controller import AccessController
from auth.dependencies import get_current_claims, require_permission
from auth.models import SessionClaims
from auth.roles import parse_permissions
from core.config import get_settings

# Auth policy:
# - POST /auth/register, /auth/login, /auth/logout, /auth/recovery*: public
# - GET  /auth/me, /auth/permissions/{perm}: requires auth (get_current_claims)
# - GET  /auth/roles: requires roles.manage (require_permission)
router = APIRouter()


def _login_limit() -> str:
    return get_settings().login_rate_limit


def _controller(request: Request) -> AccessController:
    return request.app.state.controller


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an administrator account. The caller logs in separately afterwards."""
    user_id = _controller(request).register(body.email, body.password, body.display_name)
    return RegisterResponse(user_id=user_id)


@limiter.limit(_login_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the JWT and set it as a cookie."""
    controller = _controller(request)
    token = controller.login(body.email, body.password)
    expires_in = int(controller.tokens.session_ttl.total_seconds())

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(access_token=token, expires_in=expires_in).model_dump(),
    )
    resp.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=request.app.state.settings.secure_cookies,
        max_age=expires_in,
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the JWT cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.post("/auth/recovery", response_model=MessageResponse)
def request_recovery(request: Request, body: RecoveryRequest) -> MessageResponse:
    _controller(request).request_recovery(body.email)
    return MessageResponse(message="A recovery link has been sent to your email address.")


@router.post("/auth/recovery/confirm", response_model=MessageResponse)
def confirm_recovery(request: Request, body: RecoveryConfirm) -> MessageResponse:
    _controller(request).complete_recovery(body.token, body.new_password)
    return MessageResponse(message="Password updated. Please log in.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(claims: SessionClaims = Depends(get_current_claims)) -> MeResponse:
    return MeResponse(
        user_id=claims.user_id,
        email=claims.email,
        role=claims.role_name,
        expires_at=claims.expires_at.isoformat() if claims.expires_at else None,
    )


@router.get("/auth/permissions/{permission}", response_model=PermissionCheckResponse)
def check_permission(
    request: Request,
    permission: str,
    claims: SessionClaims = Depends(get_current_claims),
) -> PermissionCheckResponse:
    """Report whether the current user's role grants permission. Always 200 when authenticated."""
    granted = _controller(request).check_permission(claims.email, permission)
    return PermissionCheckResponse(permission=permission, granted=granted)


@router.get("/auth/roles")
def list_roles(
    request: Request,
    claims: SessionClaims = Depends(require_permission("roles.manage")),
) -> list[dict]:
    """List every role with its parsed permissions. Requires roles.manage."""
    return [
        {"id": r.id, "name": r.name, "permissions": sorted(parse_permissions(r.permissions))}
        for r in request.app.state.user_store.list_roles()
    ]
