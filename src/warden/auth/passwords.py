"""
Password hashing and verification.

Thin wrapper over bcrypt with a configurable work factor.
"""

import bcrypt

from .errors import CryptoError

DEFAULT_ROUNDS = 12


class PasswordHasher:
    """
    Bcrypt password hasher.

    Every hash uses a fresh random salt, so hashing the same password twice
    gives two different digests that both verify.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        """
        Initialize hasher.

        Args:
            rounds: Bcrypt work factor (log2 of the iteration count)
        """
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """
        Hash a plain text password.

        Args:
            password: Plain text password

        Returns:
            Bcrypt digest as a string

        Raises:
            CryptoError: If bcrypt fails (e.g. password longer than 72 bytes)
        """
        try:
            digest = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(self.rounds))
        except ValueError as e:
            raise CryptoError(f"Password hashing failed: {e}") from e
        return digest.decode("utf-8")

    def verify(self, password: str, digest: str) -> bool:
        """
        Check a plain text password against a stored digest.

        Returns:
            True if password matches, False otherwise

        Raises:
            CryptoError: If the digest is not a valid bcrypt hash
        """
        try:
            return bcrypt.checkpw(password.encode("utf-8"), digest.encode("utf-8"))
        except ValueError as e:
            raise CryptoError(f"Malformed password digest: {e}") from e
