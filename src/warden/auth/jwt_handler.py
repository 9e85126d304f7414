"""
JWT token generation and validation.

Handles creation and verification of stateless access tokens. There is no
server-side session: a token is valid until it expires.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from loguru import logger

from .errors import TokenExpired, TokenInvalid, TokenMissing
from .models import User


ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60  # 1 hour
BEARER_PREFIX = "bearer"

REQUIRED_CLAIMS = ["sub", "username", "email", "iat", "exp"]


@dataclass
class TokenPayload:
    """
    Decoded JWT payload.

    Attributes:
        user_id: User UUID (the "sub" claim)
        username: Username
        email: User email
        iat: Issued at timestamp
        exp: Expiration timestamp
    """
    user_id: str
    username: str
    email: str
    iat: datetime
    exp: datetime


class JWTHandler:
    """
    JWT token handler.

    Creates and validates JWT tokens for authentication.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = ALGORITHM,
        expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        """
        Initialize handler.

        Args:
            secret_key: Secret key for signing tokens
            algorithm: JWT algorithm (default: HS256)
            expire_minutes: Access token lifetime
        """
        if not secret_key:
            raise ValueError("JWT secret key must not be empty")

        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = timedelta(minutes=expire_minutes)

    def create_access_token(self, user: User, now: Optional[datetime] = None) -> str:
        """
        Create JWT access token.

        Args:
            user: Authenticated user
            now: Issue time (defaults to the current UTC time)

        Returns:
            JWT token string
        """
        if now is None:
            now = datetime.now(timezone.utc)
        issued_at = int(now.timestamp())

        payload = {
            "sub": user.user_id,
            "username": user.username,
            "email": user.email,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Access token created for user {user.username}")

        return token

    def verify_token(self, token: Optional[str]) -> TokenPayload:
        """
        Verify and decode JWT token.

        Args:
            token: JWT token string

        Returns:
            TokenPayload with the verified claims

        Raises:
            TokenMissing: If the token is absent or empty
            TokenExpired: If the token is past its expiry
            TokenInvalid: If the signature or structure is wrong
        """
        if not token:
            raise TokenMissing()

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("Token has expired")
            raise TokenExpired() from e
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise TokenInvalid() from e

        return TokenPayload(
            user_id=payload["sub"],
            username=payload["username"],
            email=payload["email"],
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


def extract_bearer_token(header: Optional[str]) -> str:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Raises:
        TokenMissing: If the header is absent, uses another scheme, or
            carries no token
    """
    if not header:
        raise TokenMissing()

    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != BEARER_PREFIX or not token.strip():
        raise TokenMissing()

    return token.strip()
