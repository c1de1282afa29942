"""
auth/controller.py -- Registration, login, recovery and permission flows.

AccessController is stateless between calls: every operation reads what it
needs from the store, does its work, and writes back at most once or twice.
It owns no locks; uniqueness of emails is enforced by the store.

Failures are raised as AccessError subclasses (see auth/errors.py) so the
caller can branch on type or .code. Token verification is the exception to
that rule: authenticate() returns TokenInvalid rather than raising.

Timing [C1]: login() runs one bcrypt verification even when the email is
unknown, so response time does not reveal whether an account exists. The
distinct UserNotFoundError outcome is still reported to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from auth.errors import (
    DuplicateEmailError,
    EmailNotRegisteredError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidRecoveryTokenError,
    StorageError,
    UserNotFoundError,
)
from auth.hashing import CredentialHasher
from auth.models import NO_ROLE, SessionClaims, TokenInvalid, User
from auth.notify import LogRecoveryNotifier, RecoveryNotifier
from auth.roles import RoleEvaluator
from auth.store import SqlUserStore, UserStore
from auth.tokens import TokenService, utc_now

logger = logging.getLogger("accessadmin.auth")

RECOVERY_TOKEN_TTL = timedelta(hours=1)
DEFAULT_ROLE_ID = 2


def normalize_email(email: str) -> str:
    """Strip and lower-case an email; raise InvalidInputError if nothing is left."""
    if not isinstance(email, str) or not email.strip():
        raise InvalidInputError("Email must not be empty.")
    return email.strip().lower()


class AccessController:
    """Coordinates CredentialHasher, TokenService, RoleEvaluator and a UserStore.

    Usage:
        ctrl = AccessController(store, CredentialHasher(), TokenService(secret))
        ctrl.register("a@x.com", "secret1", "Name")
        token = ctrl.login("a@x.com", "secret1")
    """

    def __init__(
        self,
        store: UserStore,
        hasher: CredentialHasher,
        tokens: TokenService,
        evaluator: RoleEvaluator | None = None,
        notifier: RecoveryNotifier | None = None,
        default_role_id: int = DEFAULT_ROLE_ID,
        recovery_ttl: timedelta = RECOVERY_TOKEN_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.evaluator = evaluator or RoleEvaluator()
        self.notifier = notifier or LogRecoveryNotifier()
        self.default_role_id = default_role_id
        self.recovery_ttl = recovery_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings, store: UserStore | None = None) -> AccessController:
        """Build the production object graph from a core.config.Settings instance."""
        return cls(
            store=store if store is not None else SqlUserStore(settings.database_url),
            hasher=CredentialHasher(rounds=settings.bcrypt_rounds),
            tokens=TokenService(
                settings.secret_key,
                session_ttl=timedelta(seconds=settings.session_token_expire_seconds),
            ),
            default_role_id=settings.default_role_id,
            recovery_ttl=timedelta(seconds=settings.recovery_token_expire_seconds),
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, display_name: str = "") -> int:
        """Create an account with the default role and return its new id.

        No token is issued; the caller must log in separately.
        """
        email = normalize_email(email)
        if self.store.find_by_email(email) is not None:
            logger.info("Registration rejected: %s already registered", email)
            raise DuplicateEmailError()

        user = User(email=email, password_hash=self.hasher.hash(password), display_name=display_name or "")
        # A concurrent registration can still win the race here; the store
        # raises DuplicateEmailError from the unique constraint.
        self.store.save(user)

        try:
            user_id = self.store.find_id_by_email(email)
            if user_id is None:
                raise StorageError("User record missing immediately after insert.")
            self.store.assign_role(user_id, self.default_role_id)
        except Exception:
            # No half-registered account: the email must stay free for a retry.
            logger.warning("Role assignment failed for %s; removing the new user", email)
            if user.id is not None:
                self.store.delete_user(user.id)
            raise
        logger.info("Registered user id=%s with role id=%s", user_id, self.default_role_id)
        return user_id

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> str:
        """Verify credentials and return a signed session token.

        A user without a role can still log in; the token carries NO_ROLE and
        authorization is left to check_permission().
        """
        email = normalize_email(email)
        user = self.store.find_by_email(email)
        if user is None:
            self.hasher.verify_dummy(password)  # [C1]
            logger.info("Login failed: unknown email %s", email)
            raise UserNotFoundError()

        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: bad password for user id=%s", user.id)
            raise InvalidCredentialsError()

        role_name = user.role.name if user.role else NO_ROLE
        return self.tokens.issue_session_token(user_id=user.id, email=user.email, role_name=role_name)

    def authenticate(self, token: str) -> SessionClaims | TokenInvalid:
        """Verify a session token. Never raises for bad or expired tokens."""
        result = self.tokens.verify_session_token(token)
        if isinstance(result, TokenInvalid):
            logger.debug("Session token rejected (%s)", result.reason.value)
        return result

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def request_recovery(self, email: str) -> str:
        """Issue a one-hour recovery token, persist its digest, and hand it to the notifier.

        Returns the raw token so a delivery layer can embed it in a link. Only
        the HMAC digest is stored.
        """
        email = normalize_email(email)
        user = self.store.find_by_email(email)
        if user is None:
            logger.info("Recovery rejected: %s not registered", email)
            raise EmailNotRegisteredError()

        token = self.tokens.issue_recovery_token()
        expires_at = self._clock() + self.recovery_ttl
        user.set_reset_token(self.tokens.hash_recovery_token(token), expires_at)
        self.store.save(user)

        self.notifier.send_recovery_link(user.email, token)
        logger.info("Recovery token issued for user id=%s (expires %s)", user.id, expires_at.isoformat())
        return token

    def complete_recovery(self, token: str, new_password: str) -> None:
        """Consume a recovery token and replace the account's password.

        The token is single-use: both reset fields are cleared in the same
        save that writes the new hash. An expired token is cleared as well.
        """
        if not isinstance(token, str) or not token:
            raise InvalidRecoveryTokenError()

        user = self.store.find_by_reset_token(self.tokens.hash_recovery_token(token))
        if user is None or user.reset_token_expires_at is None:
            raise InvalidRecoveryTokenError()

        if self._clock() >= user.reset_token_expires_at:
            user.clear_reset_token()
            self.store.save(user)
            logger.info("Expired recovery token discarded for user id=%s", user.id)
            raise InvalidRecoveryTokenError()

        # Hash only after the token is validated.
        user.password_hash = self.hasher.hash(new_password)
        user.clear_reset_token()
        self.store.save(user)
        logger.info("Password reset completed for user id=%s", user.id)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def check_permission(self, email: str, permission: str) -> bool:
        """Return True if the user's role grants permission. Unknown users get False."""
        try:
            email = normalize_email(email)
        except InvalidInputError:
            return False
        user = self.store.find_by_email(email)
        if user is None:
            return False
        return self.evaluator.evaluate(user.role, permission)
