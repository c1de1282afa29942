"""
auth/tokens.py -- Session token (JWT) and recovery token utilities.

Security design decisions:
  Session tokens: python-jose with HS256. Tokens are signed with the
       configured secret key and carry user_id, email, role, iat and exp.
       They are stateless: nothing is stored server-side, so the only way to
       invalidate one early is to rotate the key (which invalidates all).
       Verification returns a TokenInvalid value on any failure instead of
       raising -- "not authenticated" is a steady-state outcome.

  Expiry: jose's built-in exp check reads the wall clock itself, so it is
       disabled and exp is compared against a single reading of the injected
       clock taken at verification time. Tests pass a fixed clock.

  Recovery tokens: secrets.token_hex(32) gives 256 bits of entropy rendered
       as 64 hex chars. They are bearer secrets, never signed or decoded. Only
       HMAC-SHA256(secret_key, raw_token) is persisted, so a database read
       does not yield usable tokens. The digest is deterministic, so lookup by
       digest stays an indexed equality match.

Layer rule: no imports from api/. The secret key is passed in by the caller
(see AccessController.from_settings); this module never reads settings.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import SessionClaims, TokenInvalid, TokenInvalidReason

ALGORITHM = "HS256"
SESSION_TOKEN_TTL = timedelta(hours=24)
RECOVERY_TOKEN_BYTES = 32


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify session tokens; generate recovery tokens.

    Args:
        secret_key:  HS256 signing key and recovery-token HMAC key.
        session_ttl: Lifetime of a session token (24 hours by default).
        clock:       Zero-argument callable returning an aware UTC datetime.
    """

    def __init__(
        self,
        secret_key: str,
        session_ttl: timedelta = SESSION_TOKEN_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.session_ttl = session_ttl
        self._clock = clock

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def issue_session_token(self, user_id: int, email: str, role_name: str) -> str:
        """Encode a signed JWT carrying the identity claims and an absolute expiry."""
        now = self._clock()
        payload = {
            "sub": email,
            "user_id": user_id,
            "email": email,
            "role": role_name,
            "iat": int(now.timestamp()),
            "exp": int((now + self.session_ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify_session_token(self, token: str) -> SessionClaims | TokenInvalid:
        """Verify signature and expiry. Returns SessionClaims or TokenInvalid, never raises."""
        if not isinstance(token, str) or token.count(".") != 2:
            return TokenInvalid(TokenInvalidReason.malformed)
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError:
            return TokenInvalid(TokenInvalidReason.malformed)

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTClaimsError:
            return TokenInvalid(TokenInvalidReason.malformed)
        except JWTError:
            return TokenInvalid(TokenInvalidReason.signature)

        claims = _claims_from_payload(payload)
        if claims is None:
            return TokenInvalid(TokenInvalidReason.malformed)

        # One clock read per verification; never a cached "now".
        if self._clock() >= claims.expires_at:
            return TokenInvalid(TokenInvalidReason.expired)
        return claims

    # ------------------------------------------------------------------
    # Recovery tokens
    # ------------------------------------------------------------------

    def issue_recovery_token(self) -> str:
        """Return a fresh 64-char hex recovery token (256 bits of entropy)."""
        return secrets.token_hex(RECOVERY_TOKEN_BYTES)

    def hash_recovery_token(self, raw_token: str) -> str:
        """Return HMAC-SHA256(secret_key, raw_token) as a hex string."""
        return hmac.new(
            self._secret_key.encode(),
            raw_token.encode(),
            hashlib.sha256,
        ).hexdigest()


def _claims_from_payload(payload: dict) -> SessionClaims | None:
    user_id = payload.get("user_id")
    email = payload.get("email")
    role = payload.get("role")
    iat = payload.get("iat")
    exp = payload.get("exp")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    if not isinstance(email, str) or not isinstance(role, str):
        return None
    if not isinstance(exp, (int, float)):
        return None
    return SessionClaims(
        user_id=user_id,
        email=email,
        role_name=role,
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc) if isinstance(iat, (int, float)) else None,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    )
