"""
Authentication and authorization for Warden.

Provides bcrypt credentials, JWT access tokens and role-based permission
checks for HTTP requests.
"""

from .models import User, Role, Post
from .database import UserDatabase, RoleDatabase, PostDatabase
from .passwords import PasswordHasher
from .jwt_handler import JWTHandler, TokenPayload, extract_bearer_token
from .user_manager import UserManager
from .roles import DEFAULT_ROLE, RoleAssigner, requested_role_names
from .permissions import (
    HttpMethod,
    Scope,
    METHOD_SCOPES,
    PermissionChecker,
    PermissionRegistry,
    effective_permissions,
    resource_module,
)
from .errors import (
    WardenError,
    AuthenticationError,
    TokenMissing,
    TokenInvalid,
    TokenExpired,
    CredentialInvalid,
    IdentityNotFound,
    PermissionDenied,
    NoMatchingRoles,
    EmailInUse,
    UsernameInUse,
    CryptoError,
)

__all__ = [
    # Models and stores
    "User",
    "Role",
    "Post",
    "UserDatabase",
    "RoleDatabase",
    "PostDatabase",
    # Credentials and tokens
    "PasswordHasher",
    "JWTHandler",
    "TokenPayload",
    "extract_bearer_token",
    "UserManager",
    # Roles
    "DEFAULT_ROLE",
    "RoleAssigner",
    "requested_role_names",
    # Permissions
    "HttpMethod",
    "Scope",
    "METHOD_SCOPES",
    "PermissionChecker",
    "PermissionRegistry",
    "effective_permissions",
    "resource_module",
    # Errors
    "WardenError",
    "AuthenticationError",
    "TokenMissing",
    "TokenInvalid",
    "TokenExpired",
    "CredentialInvalid",
    "IdentityNotFound",
    "PermissionDenied",
    "NoMatchingRoles",
    "EmailInUse",
    "UsernameInUse",
    "CryptoError",
]
