"""
CRUD handlers for users, roles and posts.

Authentication and the permission check run in the middlewares before any of
these handlers; the handlers only map a request onto a store call.
"""

from typing import List

from aiohttp import web
from loguru import logger

from ..auth.database import PostDatabase, RoleDatabase
from ..auth.errors import NoMatchingRoles
from ..auth.middleware import (
    REQUEST_ROLE_IDS,
    REQUEST_USER,
    USER_MANAGER_KEY,
    assign_roles,
    read_json,
)
from .schemas import PostCreate, PostUpdate, RegisterRequest, RoleCreate, RoleUpdate, UserUpdate

ROLE_DB_KEY = web.AppKey("role_db", RoleDatabase)
POST_DB_KEY = web.AppKey("post_db", PostDatabase)

routes = web.RouteTableDef()


def not_found(entity: str) -> web.Response:
    return web.json_response({"success": False, "error": f"{entity} not found"}, status=404)


# ============================================================================
# Users
# ============================================================================

@routes.get("/users")
async def find_users(request: web.Request) -> web.Response:
    users = request.app[USER_MANAGER_KEY].users.list_users()
    return web.json_response([user.to_dict() for user in users])


@routes.get("/users/{user_id}")
async def find_user_by_id(request: web.Request) -> web.Response:
    user = request.app[USER_MANAGER_KEY].users.get_user_by_id(request.match_info["user_id"])
    if user is None:
        return not_found("User")
    return web.json_response(user.to_dict())


@routes.post("/users")
@assign_roles
async def create_user(request: web.Request) -> web.Response:
    data = RegisterRequest.model_validate(await read_json(request))
    user = request.app[USER_MANAGER_KEY].register(
        username=data.username,
        email=data.email,
        password=data.password,
        name=data.name,
        role_ids=request[REQUEST_ROLE_IDS],
        permissions=data.permissions,
    )
    logger.info(f"User {user.username} created by {request[REQUEST_USER].username}")
    return web.json_response(user.to_dict(), status=201)


def _role_ids_for(roles: RoleDatabase, names: List[str]) -> List[str]:
    found = roles.find_roles_by_names(names)
    if names and not found:
        raise NoMatchingRoles()
    return [role.role_id for role in found]


@routes.put("/users/{user_id}")
async def update_user(request: web.Request) -> web.Response:
    data = UserUpdate.model_validate(await read_json(request))

    role_ids = None
    if data.roles is not None:
        role_ids = _role_ids_for(request.app[ROLE_DB_KEY], data.roles)

    user = request.app[USER_MANAGER_KEY].users.update_user(
        request.match_info["user_id"],
        name=data.name,
        username=data.username,
        email=data.email,
        password=data.password,
        permissions=data.permissions,
        role_ids=role_ids,
    )
    if user is None:
        return not_found("User")
    return web.json_response(user.to_dict())


@routes.delete("/users/{user_id}")
async def delete_user(request: web.Request) -> web.Response:
    if not request.app[USER_MANAGER_KEY].users.delete_user(request.match_info["user_id"]):
        return not_found("User")
    return web.Response(status=204)


# ============================================================================
# Roles
# ============================================================================

@routes.get("/roles")
async def find_roles(request: web.Request) -> web.Response:
    return web.json_response([role.to_dict() for role in request.app[ROLE_DB_KEY].list_roles()])


@routes.get("/roles/{role_id}")
async def find_role_by_id(request: web.Request) -> web.Response:
    role = request.app[ROLE_DB_KEY].get_role_by_id(request.match_info["role_id"])
    if role is None:
        return not_found("Role")
    return web.json_response(role.to_dict())


@routes.post("/roles")
async def create_role(request: web.Request) -> web.Response:
    data = RoleCreate.model_validate(await read_json(request))
    roles = request.app[ROLE_DB_KEY]

    if roles.get_role_by_name(data.name):
        return web.json_response({"success": False, "error": "Role already exists"}, status=409)

    role = roles.create_role(data.name, data.permissions)
    return web.json_response(role.to_dict(), status=201)


@routes.put("/roles/{role_id}")
async def update_role(request: web.Request) -> web.Response:
    data = RoleUpdate.model_validate(await read_json(request))
    roles = request.app[ROLE_DB_KEY]
    role_id = request.match_info["role_id"]

    if data.name is not None:
        existing = roles.get_role_by_name(data.name)
        if existing and existing.role_id != role_id:
            return web.json_response({"success": False, "error": "Role already exists"}, status=409)

    role = roles.update_role(
        role_id,
        name=data.name,
        permissions=data.permissions,
    )
    if role is None:
        return not_found("Role")
    return web.json_response(role.to_dict())


@routes.delete("/roles/{role_id}")
async def delete_role(request: web.Request) -> web.Response:
    if not request.app[ROLE_DB_KEY].delete_role(request.match_info["role_id"]):
        return not_found("Role")
    return web.Response(status=204)


# ============================================================================
# Posts
# ============================================================================

@routes.get("/posts")
async def find_posts(request: web.Request) -> web.Response:
    return web.json_response([post.to_dict() for post in request.app[POST_DB_KEY].list_posts()])


@routes.get("/posts/{post_id}")
async def find_post_by_id(request: web.Request) -> web.Response:
    post = request.app[POST_DB_KEY].get_post_by_id(request.match_info["post_id"])
    if post is None:
        return not_found("Post")
    return web.json_response(post.to_dict())


@routes.post("/posts")
async def create_post(request: web.Request) -> web.Response:
    data = PostCreate.model_validate(await read_json(request))
    post = request.app[POST_DB_KEY].create_post(author=request[REQUEST_USER].user_id, **data.model_dump())
    return web.json_response(post.to_dict(), status=201)


@routes.put("/posts/{post_id}")
async def update_post(request: web.Request) -> web.Response:
    data = PostUpdate.model_validate(await read_json(request))
    post = request.app[POST_DB_KEY].update_post(request.match_info["post_id"], **data.model_dump())
    if post is None:
        return not_found("Post")
    return web.json_response(post.to_dict())


@routes.delete("/posts/{post_id}")
async def delete_post(request: web.Request) -> web.Response:
    if not request.app[POST_DB_KEY].delete_post(request.match_info["post_id"]):
        return not_found("Post")
    return web.Response(status=204)
