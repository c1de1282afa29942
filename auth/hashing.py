"""
auth/hashing.py -- One-way password hashing with bcrypt.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects. The work factor (rounds) is a constructor argument so tests can run
at the minimum cost of 4.

bcrypt only reads the first 72 bytes of its input. Rather than silently
truncating, hash() rejects longer passwords with InvalidInputError.
"""

from __future__ import annotations

import bcrypt

from auth.errors import InvalidInputError

MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = "accessadmin_timing_dummy"


class CredentialHasher:
    """Hash and verify plaintext passwords.

    Usage:
        hasher = CredentialHasher(rounds=12)
        stored = hasher.hash("secret1")
        hasher.verify("secret1", stored)   # True
    """

    def __init__(self, rounds: int = 12) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # Timing equalization dummy hash [C1]. Computed once so the first
        # unknown-email login is not measurably slower than later ones.
        self._dummy_hash = self.hash(_DUMMY_PASSWORD)

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain. Two calls never return the same string."""
        encoded = _encode(plain)
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        Never raises: a malformed hash, a non-string argument or an over-long
        password all yield False, so format problems are not observable.
        Rejected input still costs one bcrypt round [C1].
        """
        try:
            encoded = _encode(plain)
        except InvalidInputError:
            self.verify_dummy(plain)
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def verify_dummy(self, plain: str) -> None:
        """Spend one verification's worth of CPU when there is no real hash to check.

        Login calls this for unknown emails so response time does not reveal
        whether an account exists.
        """
        try:
            encoded = _encode(plain)
        except InvalidInputError:
            encoded = _DUMMY_PASSWORD.encode("utf-8")
        bcrypt.checkpw(encoded, self._dummy_hash.encode("utf-8"))


def _encode(plain: str) -> bytes:
    if not isinstance(plain, str) or not plain:
        raise InvalidInputError("Password must be a non-empty string.")
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return encoded
