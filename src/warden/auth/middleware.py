"""
aiohttp middlewares for authentication and authorization.

Order per request: access log -> errors -> authentication -> authorization -> handler.
Handlers decorated with @public skip both checks. Handlers that create users
are decorated with @assign_roles, which resolves the requested role names
before the handler runs.
"""

import functools
import time
from typing import Awaitable, Callable

from aiohttp import web
from loguru import logger
from pydantic import ValidationError

from .errors import CryptoError, WardenError
from .jwt_handler import extract_bearer_token
from .roles import requested_role_names
from .user_manager import UserManager

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

USER_MANAGER_KEY = web.AppKey("user_manager", UserManager)

# Request keys set by the middlewares
REQUEST_USER = "user"
REQUEST_ROLE_IDS = "role_ids"
REQUEST_BODY = "json_body"


def error_response(message: str, status: int, **extra) -> web.Response:
    return web.json_response({"success": False, "error": message, **extra}, status=status)


def public(handler: Handler) -> Handler:
    """Mark a route handler as reachable without a token."""
    handler.public = True
    return handler


def is_public(request: web.Request) -> bool:
    match_info = request.match_info
    # Unmatched routes answer 404/405 on their own
    if getattr(match_info, "http_exception", None) is not None:
        return True
    return getattr(match_info.handler, "public", False)


async def read_json(request: web.Request) -> dict:
    """
    Read a JSON object body.

    The parsed body is kept on the request, so decorators and handlers can
    each call this for the same request.

    Raises:
        web.HTTPBadRequest: If the body is not a JSON object
    """
    if REQUEST_BODY in request:
        return request[REQUEST_BODY]
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError
        raise web.HTTPBadRequest(text="Request body must be valid UTF-8 JSON") from None
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(text="Request body must be a JSON object")
    request[REQUEST_BODY] = body
    return body


@web.middleware
async def access_log_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Log one line per request with its status and duration."""
    started = time.perf_counter()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.path_qs} {status} {elapsed_ms:.1f} ms")


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """
    Turn authorization-layer errors into terminal JSON responses.

    Hashing failures and unexpected exceptions are logged with their
    traceback and answered with a generic 500.
    """
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except CryptoError:
        logger.exception(f"Crypto failure handling {request.method} {request.path}")
        return error_response("Internal server error", 500)
    except WardenError as e:
        logger.info(f"{request.method} {request.path} -> {e.status} ({type(e).__name__})")
        return error_response(e.message, e.status)
    except ValidationError as e:
        return error_response(
            "Validation failed",
            422,
            details=e.errors(include_url=False, include_context=False, include_input=False),
        )
    except Exception:
        logger.exception(f"Unhandled error for {request.method} {request.path}")
        return error_response("Internal server error", 500)


class AuthenticationMiddleware:
    """
    Authentication and authorization middleware.

    Verifies the bearer token, attaches the loaded user to the request, then
    checks the permission the method and path require.
    """

    def __init__(self, user_manager: UserManager, api_prefix: str = ""):
        """
        Initialize middleware.

        Args:
            user_manager: UserManager for token verification and permission checks
            api_prefix: Path prefix stripped before deriving the resource module
        """
        self.user_manager = user_manager
        self.api_prefix = api_prefix.rstrip("/")

    def resource_path(self, request: web.Request) -> str:
        path = request.path
        if self.api_prefix and path.startswith(self.api_prefix):
            path = path[len(self.api_prefix):]
        return path

    @web.middleware
    async def authenticate(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        """Resolve the caller's identity from the Authorization header."""
        if is_public(request):
            return await handler(request)

        token = extract_bearer_token(request.headers.get("Authorization"))
        user = self.user_manager.authenticate(token)
        request[REQUEST_USER] = user

        return await handler(request)

    @web.middleware
    async def authorize(self, request: web.Request, handler: Handler) -> web.StreamResponse:
        """Allow the request only if the attached user holds the permission."""
        if is_public(request):
            return await handler(request)

        user = request[REQUEST_USER]
        self.user_manager.authorize(user, request.method, self.resource_path(request))

        return await handler(request)

    @property
    def middlewares(self):
        return [self.authenticate, self.authorize]


def assign_roles(handler: Handler) -> Handler:
    """
    Resolve the body's role names to role ids before creating a user.

    Stores the ids under ``request["role_ids"]``.
    """

    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        body = await read_json(request)
        manager = request.app[USER_MANAGER_KEY]
        request[REQUEST_ROLE_IDS] = manager.resolve_roles(requested_role_names(body))
        return await handler(request)

    return wrapper
