"""
Runtime configuration.

Settings are read from ``WARDEN_*`` environment variables. The JWT secret
can come from the environment directly or from a file.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel, Field

ENV_PREFIX = "WARDEN_"

TRUE_VALUES = {"1", "true", "yes", "on"}


def load_jwt_secret(secret_file: Path) -> Optional[str]:
    """Load JWT secret from file."""
    if not secret_file.exists():
        logger.error(f"JWT secret file not found: {secret_file}")
        return None

    secret = secret_file.read_text().strip()
    return secret or None


class Settings(BaseModel):
    """Process-wide settings, built once at startup."""

    jwt_secret: str = Field(min_length=1)
    salt_rounds: int = Field(default=12, ge=4, le=31)
    token_ttl_minutes: int = Field(default=60, gt=0)
    db_path: Path = Path("data/warden.db")
    host: str = "0.0.0.0"
    port: int = 4000
    api_prefix: str = "/api/v1"
    strict_permissions: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Variables to read (defaults to os.environ)
            **overrides: Values that win over the environment

        Raises:
            ValueError: If no JWT secret is configured
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        values = {}
        secret = get("JWT_SECRET")
        if not secret and get("JWT_SECRET_FILE"):
            secret = load_jwt_secret(Path(get("JWT_SECRET_FILE")))
        if secret:
            values["jwt_secret"] = secret

        for field_name, env_name in (
            ("salt_rounds", "SALT_ROUNDS"),
            ("token_ttl_minutes", "TOKEN_TTL_MINUTES"),
            ("db_path", "DB_PATH"),
            ("host", "HOST"),
            ("port", "PORT"),
            ("api_prefix", "API_PREFIX"),
            ("log_level", "LOG_LEVEL"),
        ):
            if get(env_name):
                values[field_name] = get(env_name)

        if get("STRICT_PERMISSIONS"):
            values["strict_permissions"] = get("STRICT_PERMISSIONS").strip().lower() in TRUE_VALUES

        values.update({key: value for key, value in overrides.items() if value is not None})

        if "jwt_secret" not in values:
            raise ValueError(
                f"JWT secret not configured: set {ENV_PREFIX}JWT_SECRET or {ENV_PREFIX}JWT_SECRET_FILE"
            )

        return cls(**values)
