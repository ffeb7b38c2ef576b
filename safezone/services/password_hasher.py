"""Adaptive one-way password hashing backed by bcrypt."""

import secrets

import bcrypt
import structlog

from safezone.errors import HashingError

logger = structlog.get_logger(__name__)

# bcrypt ignores (or, in newer releases, rejects) input past this many bytes.
BCRYPT_MAX_PASSWORD_BYTES = 72
DEFAULT_ROUNDS = 12


class PasswordHasher:
    """bcrypt hashing with a configurable cost factor.

    Every hash carries its own random salt, so hashing the same password twice
    yields different strings. Verification uses bcrypt's constant-time
    comparison.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not 4 <= rounds <= 31:
            raise ValueError(f"bcrypt rounds must be between 4 and 31, got {rounds}")
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string (salt and cost embedded)

        Raises:
            HashingError: If bcrypt rejects the input or fails internally
        """
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
            raise HashingError(detail="password exceeds bcrypt input limit")
        try:
            hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds))
        except ValueError as e:
            logger.error("password_hash_failed", error=str(e))
            raise HashingError(detail=str(e)) from e
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise

        Raises:
            HashingError: If ``password_hash`` is not a bcrypt hash
        """
        encoded = password.encode("utf-8")
        try:
            hashed = password_hash.encode("utf-8")
            if len(encoded) > BCRYPT_MAX_PASSWORD_BYTES:
                # Such a password could never have been hashed; still validate the hash.
                bcrypt.checkpw(b"", hashed)
                return False
            return bcrypt.checkpw(encoded, hashed)
        except ValueError as e:
            logger.error("password_verify_failed", error=str(e))
            raise HashingError(detail=f"malformed password hash: {e}") from e

    def verify_dummy(self, password: str) -> None:
        """Spend one verification's worth of work against a throwaway hash.

        Used when the account does not exist, so that response timing does not
        reveal whether an identifier is registered.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(
                secrets.token_bytes(16), bcrypt.gensalt(rounds=self.rounds)
            )
        encoded = password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]
        bcrypt.checkpw(encoded, self._dummy_hash)
