"""
Unit tests for settings and server wiring.
"""

from pathlib import Path

import pytest

from warden.api.app import DEFAULT_ROLES, seed_default_roles
from warden.config import Settings
from warden.server import parse_args


class TestSettings:
    """Test reading settings from the environment."""

    def test_defaults(self):
        settings = Settings.from_env({"WARDEN_JWT_SECRET": "s3cret"})

        assert settings.jwt_secret == "s3cret"
        assert settings.salt_rounds == 12
        assert settings.token_ttl_minutes == 60
        assert settings.api_prefix == "/api/v1"
        assert settings.strict_permissions is False

    def test_environment_values(self):
        settings = Settings.from_env({
            "WARDEN_JWT_SECRET": "s3cret",
            "WARDEN_SALT_ROUNDS": "10",
            "WARDEN_PORT": "8080",
            "WARDEN_DB_PATH": "/tmp/w.db",
            "WARDEN_STRICT_PERMISSIONS": "yes",
        })

        assert settings.salt_rounds == 10
        assert settings.port == 8080
        assert settings.db_path == Path("/tmp/w.db")
        assert settings.strict_permissions is True

    def test_secret_file(self, tmp_path):
        secret_file = tmp_path / ".jwt_secret"
        secret_file.write_text("from-file\n")

        settings = Settings.from_env({"WARDEN_JWT_SECRET_FILE": str(secret_file)})

        assert settings.jwt_secret == "from-file"

    def test_overrides_win(self):
        settings = Settings.from_env({"WARDEN_JWT_SECRET": "s3cret", "WARDEN_PORT": "8080"}, port=9000, host=None)

        assert settings.port == 9000
        assert settings.host == "0.0.0.0"

    def test_missing_secret(self, tmp_path):
        with pytest.raises(ValueError):
            Settings.from_env({})
        with pytest.raises(ValueError):
            Settings.from_env({"WARDEN_JWT_SECRET_FILE": str(tmp_path / "missing")})

    def test_invalid_rounds(self):
        with pytest.raises(ValueError):
            Settings.from_env({"WARDEN_JWT_SECRET": "s3cret", "WARDEN_SALT_ROUNDS": "2"})


class TestSeeding:
    """Test default role seeding."""

    def test_seed_is_idempotent(self, role_db):
        assert sorted(seed_default_roles(role_db)) == sorted(DEFAULT_ROLES)
        assert seed_default_roles(role_db) == []
        assert role_db.get_role_by_name("guest").permissions == ["posts_read"]

    def test_seed_keeps_existing_roles(self, role_db, user_role):
        seed_default_roles(role_db)

        assert role_db.get_role_by_name("user") == user_role


def test_parse_args():
    args = parse_args(["--port", "5000", "--seed-roles"])

    assert args.port == 5000
    assert args.seed_roles is True
    assert args.host is None
