"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login endpoint.
  2. Authorization: Bearer <token> header -- API clients.

try_get_claims() is the soft variant (returns None on failure).
get_current_claims() wraps it and raises HTTP 401 if unauthenticated.
require_permission() builds a dependency that also checks a permission
against the user's current role and raises HTTP 403 when it is missing.

The controller lives on request.app.state.controller (see api/main.py lifespan).

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.controller import AccessController
from auth.models import SessionClaims


def _token_from_request(request: Request) -> str | None:
    token: str | None = request.cookies.get("access_token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_claims(request: Request) -> SessionClaims | None:
    """Return the verified session claims, or None. Never raises."""
    token = _token_from_request(request)
    if token is None:
        return None
    controller: AccessController = request.app.state.controller
    result = controller.authenticate(token)
    return result if isinstance(result, SessionClaims) else None


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid session token. Raises HTTP 401 otherwise."""
    claims = try_get_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return claims


def require_permission(permission: str) -> Callable[[Request], SessionClaims]:
    """Build a dependency that requires authentication plus one permission.

    The role is re-read from the store rather than trusted from the token,
    so a role change applies before the token expires.

        @router.get("/orders", dependencies=[Depends(require_permission("orders.read"))])
    """

    def dependency(request: Request) -> SessionClaims:
        claims = get_current_claims(request)
        controller: AccessController = request.app.state.controller
        if not controller.check_permission(claims.email, permission):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"Permission '{permission}' required."},
            )
        return claims

    return dependency
