"""
Authentication API.

Handles registration and login. Neither route requires a token.
"""

from aiohttp import web
from loguru import logger

from ..auth.middleware import REQUEST_ROLE_IDS, USER_MANAGER_KEY, assign_roles, public, read_json
from .schemas import LoginRequest, RegisterRequest


@public
@assign_roles
async def handle_register(request: web.Request) -> web.Response:
    """
    Handle registration request.

    POST /api/v1/auth/register
    Body: {"name": "...", "username": "...", "email": "...", "password": "...", "roles": [...]}
    Returns: the created user (201)
    """
    data = RegisterRequest.model_validate(await read_json(request))
    manager = request.app[USER_MANAGER_KEY]

    user = manager.register(
        username=data.username,
        email=data.email,
        password=data.password,
        name=data.name,
        role_ids=request[REQUEST_ROLE_IDS],
        permissions=data.permissions,
    )

    logger.info(f"User registered: {user.username} (roles: {', '.join(user.role_names)})")
    return web.json_response(user.to_dict(), status=201)


@public
async def handle_login(request: web.Request) -> web.Response:
    """
    Handle login request.

    POST /api/v1/auth/login
    Body: {"email": "...", "password": "..."}
    Returns: {"success": true, "message": "Login successful", "token": "..."}
    """
    data = LoginRequest.model_validate(await read_json(request))
    manager = request.app[USER_MANAGER_KEY]

    token, user = manager.login(data.email, data.password)

    return web.json_response({
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": user.to_dict(),
    })


@public
async def health_check(request: web.Request) -> web.Response:
    """Liveness probe."""
    return web.Response(text="Api is healthy")
