"""
Authentication and authorization errors.

Every error carries the HTTP status the middleware answers with and a
message that is safe to show to the client.
"""

from typing import Optional


class WardenError(Exception):
    """Base error for the authorization layer."""

    status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(WardenError):
    """Caller could not be authenticated."""

    status = 401
    default_message = "Authentication failed"


class TokenMissing(AuthenticationError):
    default_message = "Access denied. No token provided"


class TokenInvalid(AuthenticationError):
    default_message = "Invalid token"


class TokenExpired(AuthenticationError):
    default_message = "Token has expired"


class CredentialInvalid(WardenError):
    """
    Bad email or password at login.

    The same message is used for an unknown email and a wrong password.
    """

    status = 400
    default_message = "Invalid user or password"


class IdentityNotFound(WardenError):
    """Token verified but the user it names no longer exists."""

    status = 400
    default_message = "Invalid credentials"


class PermissionDenied(WardenError):
    """
    Authenticated user lacks the permission an operation requires.

    Attributes:
        user_id: The user who was denied
        required_permission: The permission string that was required
    """

    status = 403
    default_message = "Forbidden"

    def __init__(self, user_id: Optional[str] = None, required_permission: Optional[str] = None):
        self.user_id = user_id
        self.required_permission = required_permission
        super().__init__()


class NoMatchingRoles(WardenError):
    status = 404
    default_message = "No roles found"


class EmailInUse(WardenError):
    status = 409
    default_message = "Email already in use"


class UsernameInUse(WardenError):
    status = 409
    default_message = "Username already in use"


class CryptoError(WardenError):
    """Password hashing primitive failed. Never shown to the client."""
