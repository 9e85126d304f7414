"""
User authentication manager.

Combines the credential store, password hashing and JWT handling for the
complete authentication flow.
"""

from typing import List, Optional, Tuple

from loguru import logger

from .database import UserDatabase
from .errors import CredentialInvalid, EmailInUse, IdentityNotFound
from .jwt_handler import JWTHandler
from .models import User
from .passwords import PasswordHasher
from .permissions import PermissionChecker
from .roles import RoleAssigner


class UserManager:
    """
    User authentication and authorization manager.

    Combines the stores and handlers built at startup to provide:
    - Registration and login
    - Token verification into a fully loaded user
    - Permission checking and role assignment
    """

    def __init__(
        self,
        users: UserDatabase,
        jwt_handler: JWTHandler,
        checker: PermissionChecker,
        assigner: RoleAssigner,
        hasher: Optional[PasswordHasher] = None,
    ):
        """
        Initialize manager.

        Args:
            users: Credential store
            jwt_handler: Token issuer and verifier
            checker: Permission resolver
            assigner: Role assignment resolver
            hasher: Password hasher (defaults to the credential store's)
        """
        self.users = users
        self.jwt = jwt_handler
        self.checker = checker
        self.assigner = assigner
        self.hasher = hasher or users.hasher

    def register(
        self,
        username: str,
        email: str,
        password: str,
        name: str = "",
        role_ids: Optional[List[str]] = None,
        permissions: Optional[List[str]] = None,
    ) -> User:
        """
        Register a new user.

        Args:
            role_ids: Ids already resolved by the role assigner; the default
                role when None

        Returns:
            Created User

        Raises:
            EmailInUse: If the email is already registered
            UsernameInUse: If the username is already taken
            NoMatchingRoles: If none of the requested roles exists
        """
        if self.users.get_user_by_email(email):
            logger.warning(f"Registration of '{username}' rejected: email already in use")
            raise EmailInUse()

        if role_ids is None:
            role_ids = self.assigner.resolve_roles(None)
        return self.users.create_user(
            username=username,
            email=email,
            password=password,
            name=name,
            role_ids=role_ids,
            permissions=permissions,
        )

    def login(self, email: str, password: str) -> Tuple[str, User]:
        """
        Authenticate user and return an access token.

        Args:
            email: User email
            password: Plain text password

        Returns:
            (access_token, user) tuple

        Raises:
            CredentialInvalid: If the email is unknown or the password wrong
        """
        user = self.users.get_user_by_email(email)
        if not user:
            logger.warning("Login failed: unknown email")
            raise CredentialInvalid()

        if not self.hasher.verify(password, user.password_hash):
            logger.warning(f"Login failed: invalid password for '{user.username}'")
            raise CredentialInvalid()

        token = self.jwt.create_access_token(user)

        logger.info(f"User logged in: {user.username}")
        return token, user

    def authenticate(self, token: Optional[str]) -> User:
        """
        Verify a token and load the user it names.

        Args:
            token: Raw JWT (without the bearer prefix)

        Returns:
            User with roles populated

        Raises:
            TokenMissing, TokenInvalid, TokenExpired: If the token is rejected
            IdentityNotFound: If the user no longer exists
        """
        payload = self.jwt.verify_token(token)

        user = self.users.get_user_by_id(payload.user_id)
        if not user:
            logger.warning(f"Token for deleted user {payload.user_id} rejected")
            raise IdentityNotFound()

        return user

    def authorize(self, user: User, method: str, path: str) -> str:
        """Check that ``user`` may perform ``method`` on ``path``."""
        return self.checker.authorize(user, method, path)

    def resolve_roles(self, names: Optional[List[str]]) -> List[str]:
        return self.assigner.resolve_roles(names)
