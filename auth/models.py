"""
auth/models.py -- Domain dataclasses for account access entities.

Pattern: Data class. Dataclasses own domain shape; stores, the token service
and the controller do the work. The one piece of behaviour kept here is the
reset-token pairing on User: reset_token and reset_token_expires_at are both
None or both set, and the two mutators below are the only way to change them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Role name carried in a session token when the user has no role assigned.
NO_ROLE = "no-role"


@dataclass
class Role:
    """A named bundle of permissions. Roles are shared, never owned by a user.

    permissions is the raw comma-delimited string as stored, e.g.
    "orders.read, orders.write". RoleEvaluator parses it.
    """

    name: str
    permissions: str = ""
    id: int | None = None


@dataclass
class User:
    """An administrator account.

    id is None until the store assigns one on first save. password_hash is
    the CredentialHasher output, never the plaintext. reset_token holds the
    HMAC digest of an outstanding recovery token, not the raw token.
    """

    email: str
    password_hash: str
    display_name: str = ""
    id: int | None = None
    reset_token: str | None = None
    reset_token_expires_at: datetime | None = None
    role: Role | None = None
    created_at: str | None = None

    def __post_init__(self) -> None:
        if (self.reset_token is None) != (self.reset_token_expires_at is None):
            raise ValueError("reset_token and reset_token_expires_at must be set together")

    def set_reset_token(self, token: str, expires_at: datetime) -> None:
        self.reset_token = token
        self.reset_token_expires_at = expires_at

    def clear_reset_token(self) -> None:
        self.reset_token = None
        self.reset_token_expires_at = None

    def __repr__(self) -> str:
        # password_hash and reset_token are omitted so a stray log line cannot leak them.
        role = self.role.name if self.role else None
        return f"User(id={self.id!r}, email={self.email!r}, role={role!r})"


@dataclass(frozen=True)
class SessionClaims:
    """Identity claims decoded from a verified session token.

    Equality compares the identity claims only; issued_at and expires_at are
    informational and differ between tokens issued for the same user.
    """

    user_id: int
    email: str
    role_name: str
    issued_at: datetime | None = field(default=None, compare=False)
    expires_at: datetime | None = field(default=None, compare=False)


class TokenInvalidReason(str, Enum):
    signature = "signature"
    expired = "expired"
    malformed = "malformed"


@dataclass(frozen=True)
class TokenInvalid:
    """Negative outcome of session token verification.

    The reason is for logs and metrics only. Callers treat every reason the
    same way: the request is not authenticated.
    """

    reason: TokenInvalidReason
