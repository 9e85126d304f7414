"""
Unit tests for password hashing.
"""

import pytest

from warden.auth.errors import CryptoError


class TestPasswordHasher:
    """Test bcrypt hashing and verification."""

    def test_hash_verifies(self, hasher):
        """A digest verifies against the password it was made from."""
        digest = hasher.hash("secret123")

        assert digest != "secret123"
        assert hasher.verify("secret123", digest)

    def test_hash_is_salted(self, hasher):
        """Hashing twice gives different digests that both verify."""
        first = hasher.hash("secret123")
        second = hasher.hash("secret123")

        assert first != second
        assert hasher.verify("secret123", first)
        assert hasher.verify("secret123", second)

    def test_wrong_password(self, hasher):
        """Mismatch returns False instead of raising."""
        digest = hasher.hash("secret123")

        assert hasher.verify("secret124", digest) is False
        assert hasher.verify("", digest) is False

    def test_work_factor_in_digest(self, hasher):
        """The configured rounds end up in the digest."""
        assert hasher.hash("secret123").startswith("$2b$04$")

    def test_malformed_digest(self, hasher):
        """A digest that is not bcrypt raises CryptoError."""
        with pytest.raises(CryptoError):
            hasher.verify("secret123", "not-a-bcrypt-hash")
