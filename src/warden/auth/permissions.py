"""
Permission resolution for HTTP requests.

This module provides:
- The fixed HTTP method -> scope requirement table
- A thread-safe registry of permission strings seen per method
- Effective permission computation for a user
- The allow/deny decision for {user, method, path}

Permission strings have the form ``{module}_{scope}``, where the module is
the first segment of the resource path (``/users/42`` -> ``users``).
"""

import threading
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Set

from loguru import logger

from .errors import PermissionDenied
from .models import User


class HttpMethod(str, Enum):
    """HTTP methods that carry a permission requirement."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class Scope(str, Enum):
    """Operation scope, the suffix of a permission string."""
    READ = "read"
    WRITE = "write"
    UPDATE = "update"
    DELETE = "delete"


# Map each method to the scope it requires
METHOD_SCOPES: Dict[HttpMethod, Scope] = {
    HttpMethod.GET: Scope.READ,
    HttpMethod.POST: Scope.WRITE,
    HttpMethod.PUT: Scope.UPDATE,
    HttpMethod.DELETE: Scope.DELETE,
}


def resource_module(path: str) -> str:
    """
    Get the resource module of a path.

    Examples:
        >>> resource_module("/users/123")
        'users'
        >>> resource_module("/posts")
        'posts'
    """
    for segment in path.split("?", 1)[0].split("/"):
        if segment:
            return segment
    return ""


def permission_string(module: str, scope: Scope) -> str:
    return f"{module}_{scope.value}"


def effective_permissions(user: User) -> Set[str]:
    """
    Get the permissions a user can actually use.

    Direct permissions, when present, are used exclusively and role
    permissions are ignored. Otherwise the permissions of every role the
    user belongs to are combined.
    """
    if user.permissions:
        return set(user.permissions)

    granted: Set[str] = set()
    for role in user.roles:
        granted.update(role.permissions)
    return granted


class PermissionRegistry:
    """
    Permission strings required so far, per HTTP method.

    Empty at construction and filled as requests are authorized. Each
    method's set is guarded by its own lock.
    """

    def __init__(self):
        self._seen: Dict[HttpMethod, Set[str]] = {method: set() for method in HttpMethod}
        self._locks: Dict[HttpMethod, threading.Lock] = {method: threading.Lock() for method in HttpMethod}

    def register(self, method: HttpMethod, permission: str) -> bool:
        """
        Record a permission string for a method.

        Returns:
            True if it was not registered before
        """
        with self._locks[method]:
            if permission in self._seen[method]:
                return False
            self._seen[method].add(permission)
            return True

    def snapshot(self, method: HttpMethod) -> FrozenSet[str]:
        with self._locks[method]:
            return frozenset(self._seen[method])

    def clear(self) -> None:
        for method in HttpMethod:
            with self._locks[method]:
                self._seen[method].clear()


class PermissionChecker:
    """
    Decides whether a user may perform {method, path}.

    In the default (compatible) mode a request is allowed when the user holds
    any permission string ever required for the same HTTP method, so a
    permission registered by one module can authorize another module under
    that method. With ``strict=True`` only the permission required by the
    path itself counts.
    """

    def __init__(self, registry: Optional[PermissionRegistry] = None, strict: bool = False):
        """
        Initialize permission checker.

        Args:
            registry: Per-method permission registry (a fresh one by default)
            strict: Decide on the path's own permission only
        """
        self.registry = registry if registry is not None else PermissionRegistry()
        self.strict = strict
        self.method_scopes = METHOD_SCOPES

    def required_permission(self, method: HttpMethod, path: str) -> Optional[str]:
        """
        Get the permission string a request requires.

        Returns:
            ``{module}_{scope}``, or None if the path has no module
        """
        module = resource_module(path)
        if not module:
            return None
        return permission_string(module, self.method_scopes[method])

    def is_allowed(self, granted: Iterable[str], method: HttpMethod, required: str) -> bool:
        """Decide for an already computed requirement and permission set."""
        granted = set(granted)
        if self.strict:
            return required in granted
        return bool(self.registry.snapshot(method) & granted)

    def authorize(self, user: User, method: str, path: str) -> str:
        """
        Allow or deny a request.

        Args:
            user: Authenticated user with roles populated
            method: HTTP method name
            path: Resource path relative to the API root

        Returns:
            The permission string the request required

        Raises:
            PermissionDenied: If the user is not authorized
        """
        try:
            http_method = HttpMethod(method.upper())
        except ValueError:
            logger.warning(f"User {user.username} denied: unsupported method {method}")
            raise PermissionDenied(user_id=user.user_id) from None

        required = self.required_permission(http_method, path)
        if required is None:
            logger.warning(f"User {user.username} denied: no resource module in {path!r}")
            raise PermissionDenied(user_id=user.user_id)

        if self.registry.register(http_method, required):
            logger.debug(f"Registered requirement {required} for {http_method.value}")

        if not self.is_allowed(effective_permissions(user), http_method, required):
            logger.warning(f"User {user.username} denied {http_method.value} {path} (requires: {required})")
            raise PermissionDenied(user_id=user.user_id, required_permission=required)

        return required
