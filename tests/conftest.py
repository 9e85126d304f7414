"""
Shared fixtures.

Stores live in a fresh SQLite file per test; bcrypt runs at its minimum work
factor to keep the suite fast.
"""

import pytest
from loguru import logger

from warden.api.app import build_user_manager, create_app
from warden.auth.database import PostDatabase, RoleDatabase, UserDatabase
from warden.auth.jwt_handler import JWTHandler
from warden.auth.passwords import PasswordHasher
from warden.auth.permissions import PermissionChecker
from warden.auth.roles import RoleAssigner
from warden.auth.user_manager import UserManager
from warden.config import Settings

TEST_SECRET = "test-secret-key-for-warden-unit-tests"
TEST_ROUNDS = 4


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "warden.db"


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def role_db(db_path):
    return RoleDatabase(db_path)


@pytest.fixture
def user_db(db_path, hasher):
    return UserDatabase(db_path, hasher)


@pytest.fixture
def post_db(db_path):
    return PostDatabase(db_path)


@pytest.fixture
def jwt_handler():
    return JWTHandler(TEST_SECRET)


@pytest.fixture
def user_role(role_db):
    """The default role, seeded without permissions."""
    return role_db.create_role("user", [])


@pytest.fixture
def manager(user_db, role_db, jwt_handler, hasher):
    return UserManager(
        users=user_db,
        jwt_handler=jwt_handler,
        checker=PermissionChecker(),
        assigner=RoleAssigner(role_db),
        hasher=hasher,
    )


@pytest.fixture
def settings(db_path):
    return Settings(jwt_secret=TEST_SECRET, salt_rounds=TEST_ROUNDS, db_path=db_path)


@pytest.fixture
def app_manager(settings):
    manager = build_user_manager(settings)
    manager.assigner.roles.create_role("user", [])
    return manager


@pytest.fixture
def app(settings, app_manager):
    return create_app(settings, app_manager)


@pytest.fixture
async def client(aiohttp_client, app):
    return await aiohttp_client(app)


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)
