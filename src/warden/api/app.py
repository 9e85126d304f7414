"""
Application factory.

Builds every collaborator once from the settings and wires them into the
aiohttp application.
"""

from typing import Dict, List, Optional

from aiohttp import web
from loguru import logger

from ..auth.database import PostDatabase, RoleDatabase, UserDatabase
from ..auth.jwt_handler import JWTHandler
from ..auth.middleware import (
    USER_MANAGER_KEY,
    AuthenticationMiddleware,
    access_log_middleware,
    error_middleware,
)
from ..auth.passwords import PasswordHasher
from ..auth.permissions import PermissionChecker, PermissionRegistry
from ..auth.roles import RoleAssigner
from ..auth.user_manager import UserManager
from ..config import Settings
from .auth_api import handle_login, handle_register, health_check
from .resources import POST_DB_KEY, ROLE_DB_KEY, routes

# Roles inserted by seed_default_roles()
DEFAULT_ROLES: Dict[str, List[str]] = {
    "user": ["posts_read", "posts_write", "posts_update", "posts_delete"],
    "admin": [
        f"{module}_{scope}"
        for module in ("users", "roles", "posts")
        for scope in ("read", "write", "update", "delete")
    ],
    "manager": [
        "posts_read",
        "posts_write",
        "posts_update",
        "posts_delete",
        "users_write",
        "users_read",
        "users_update",
    ],
    "guest": ["posts_read"],
}


def build_user_manager(settings: Settings) -> UserManager:
    """Construct the stores and auth services for ``settings``."""
    hasher = PasswordHasher(rounds=settings.salt_rounds)
    users = UserDatabase(settings.db_path, hasher)
    roles = RoleDatabase(settings.db_path)

    return UserManager(
        users=users,
        jwt_handler=JWTHandler(settings.jwt_secret, expire_minutes=settings.token_ttl_minutes),
        checker=PermissionChecker(PermissionRegistry(), strict=settings.strict_permissions),
        assigner=RoleAssigner(roles),
        hasher=hasher,
    )


def seed_default_roles(roles: RoleDatabase) -> List[str]:
    """
    Insert the default roles that do not exist yet.

    Returns:
        Names of the roles that were created
    """
    created = []
    for name, permissions in DEFAULT_ROLES.items():
        if roles.get_role_by_name(name) is None:
            roles.create_role(name, permissions)
            created.append(name)
    return created


def create_app(settings: Settings, manager: Optional[UserManager] = None) -> web.Application:
    """
    Create the aiohttp application.

    Args:
        settings: Runtime settings
        manager: Prebuilt UserManager (built from settings when omitted)
    """
    if manager is None:
        manager = build_user_manager(settings)

    auth = AuthenticationMiddleware(manager, api_prefix=settings.api_prefix)
    app = web.Application(middlewares=[access_log_middleware, error_middleware, *auth.middlewares])

    app[USER_MANAGER_KEY] = manager
    app[ROLE_DB_KEY] = manager.assigner.roles
    app[POST_DB_KEY] = PostDatabase(settings.db_path)

    prefix = settings.api_prefix.rstrip("/")
    app.router.add_get(f"{prefix}/healthy", health_check)
    app.router.add_post(f"{prefix}/auth/register", handle_register)
    app.router.add_post(f"{prefix}/auth/login", handle_login)
    for route in routes:
        app.router.add_route(route.method, prefix + route.path, route.handler, **route.kwargs)

    logger.info(
        f"API mounted at {prefix or '/'} "
        f"({'strict' if settings.strict_permissions else 'compatible'} permission mode)"
    )
    return app
