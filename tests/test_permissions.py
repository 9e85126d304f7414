"""
Unit tests for permission resolution.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from warden.auth.errors import PermissionDenied
from warden.auth.models import Role, User
from warden.auth.permissions import (
    HttpMethod,
    PermissionChecker,
    PermissionRegistry,
    Scope,
    effective_permissions,
    resource_module,
)


def make_user(permissions=(), roles=()):
    return User(
        user_id="u-1",
        username="alice",
        email="a@x.com",
        password_hash="x",
        permissions=list(permissions),
        roles=list(roles),
    )


def make_role(name, *permissions):
    return Role(role_id=f"r-{name}", name=name, permissions=list(permissions))


class TestRequirementTable:
    """Test the method -> scope mapping and module derivation."""

    def test_scopes(self):
        checker = PermissionChecker()

        assert checker.method_scopes == {
            HttpMethod.GET: Scope.READ,
            HttpMethod.POST: Scope.WRITE,
            HttpMethod.PUT: Scope.UPDATE,
            HttpMethod.DELETE: Scope.DELETE,
        }

    @pytest.mark.parametrize(
        "path, module",
        [
            ("/users/123", "users"),
            ("/posts", "posts"),
            ("posts/", "posts"),
            ("//roles//abc", "roles"),
            ("/posts?page=2", "posts"),
            ("/", ""),
            ("", ""),
        ],
    )
    def test_resource_module(self, path, module):
        assert resource_module(path) == module

    def test_required_permission(self):
        checker = PermissionChecker()

        assert checker.required_permission(HttpMethod.GET, "/users/123") == "users_read"
        assert checker.required_permission(HttpMethod.POST, "/posts") == "posts_write"
        assert checker.required_permission(HttpMethod.PUT, "/roles/1") == "roles_update"
        assert checker.required_permission(HttpMethod.DELETE, "/posts/9") == "posts_delete"
        assert checker.required_permission(HttpMethod.GET, "/") is None


class TestEffectivePermissions:
    """Test direct-grant override versus role union."""

    def test_direct_permissions_override_roles(self):
        """Non-empty direct grants replace role grants entirely."""
        user = make_user(
            permissions=["posts_read"],
            roles=[make_role("manager", "users_write", "posts_read", "posts_delete")],
        )

        assert effective_permissions(user) == {"posts_read"}

    def test_role_union(self):
        """With no direct grants every role contributes."""
        user = make_user(roles=[make_role("guest", "posts_read"), make_role("hr", "users_write")])

        assert effective_permissions(user) == {"posts_read", "users_write"}

    def test_nothing_granted(self):
        assert effective_permissions(make_user()) == set()
        assert effective_permissions(make_user(roles=[make_role("user")])) == set()


class TestAuthorize:
    """Test the allow/deny decision."""

    def test_allowed(self):
        checker = PermissionChecker()
        user = make_user(roles=[make_role("guest", "posts_read")])

        assert checker.authorize(user, "GET", "/posts/1") == "posts_read"

    def test_denied(self):
        checker = PermissionChecker()
        user = make_user(roles=[make_role("guest", "posts_read")])

        with pytest.raises(PermissionDenied) as exc_info:
            checker.authorize(user, "DELETE", "/posts/1")

        assert exc_info.value.required_permission == "posts_delete"
        assert exc_info.value.user_id == "u-1"
        assert exc_info.value.status == 403

    def test_direct_grant_blocks_role_grant(self):
        """A role permission does not help when direct grants exist."""
        checker = PermissionChecker()
        user = make_user(permissions=["posts_read"], roles=[make_role("hr", "users_read")])

        with pytest.raises(PermissionDenied):
            checker.authorize(user, "GET", "/users")

    def test_no_permissions_no_roles(self):
        with pytest.raises(PermissionDenied):
            PermissionChecker().authorize(make_user(), "GET", "/posts")

    def test_lowercase_method(self):
        user = make_user(permissions=["posts_update"])

        assert PermissionChecker().authorize(user, "put", "/posts/1") == "posts_update"

    @pytest.mark.parametrize("method", ["PATCH", "HEAD", "OPTIONS"])
    def test_unsupported_method(self, method):
        user = make_user(permissions=["posts_read", "posts_update"])

        with pytest.raises(PermissionDenied):
            PermissionChecker().authorize(user, method, "/posts")

    def test_path_without_module(self):
        user = make_user(permissions=["posts_read"])

        with pytest.raises(PermissionDenied):
            PermissionChecker().authorize(user, "GET", "/")

    def test_requirement_registered_even_when_denied(self):
        checker = PermissionChecker()

        with pytest.raises(PermissionDenied):
            checker.authorize(make_user(), "GET", "/users")

        assert checker.registry.snapshot(HttpMethod.GET) == frozenset({"users_read"})


class TestAccumulatedRequirements:
    """
    Pin down the cross-module behaviour of the per-method registry.

    Compatible mode allows a request when the user holds any permission
    registered for the method; strict mode only looks at the path's own.
    """

    def test_compatible_mode_bleeds_across_modules(self):
        """Once posts_read is registered, a posts_read holder can GET /users."""
        checker = PermissionChecker()
        reader = make_user(roles=[make_role("guest", "posts_read")])

        checker.authorize(reader, "GET", "/posts")

        assert checker.authorize(reader, "GET", "/users") == "users_read"
        assert checker.registry.snapshot(HttpMethod.GET) == frozenset({"posts_read", "users_read"})

    def test_compatible_mode_bleed_from_other_users_requests(self):
        """Requirements registered by another user's requests count too."""
        checker = PermissionChecker()
        admin = make_user(permissions=["posts_read", "users_read"])
        reader = make_user(permissions=["posts_read"])

        checker.authorize(admin, "GET", "/posts")
        checker.authorize(admin, "GET", "/users")

        assert checker.authorize(reader, "GET", "/users/7") == "users_read"

    def test_compatible_mode_no_bleed_before_registration(self):
        """A fresh registry only holds the path's own requirement."""
        checker = PermissionChecker()
        reader = make_user(permissions=["posts_read"])

        with pytest.raises(PermissionDenied):
            checker.authorize(reader, "GET", "/users")

    def test_no_bleed_across_methods(self):
        checker = PermissionChecker()
        reader = make_user(permissions=["posts_read"])

        checker.authorize(reader, "GET", "/posts")

        with pytest.raises(PermissionDenied):
            checker.authorize(reader, "POST", "/posts")

    def test_strict_mode(self):
        """Strict mode decides on the path's own requirement only."""
        checker = PermissionChecker(strict=True)
        reader = make_user(permissions=["posts_read"])

        checker.authorize(reader, "GET", "/posts")

        with pytest.raises(PermissionDenied):
            checker.authorize(reader, "GET", "/users")

    def test_shared_registry(self):
        """Checkers built on one registry see each other's requirements."""
        registry = PermissionRegistry()
        reader = make_user(permissions=["posts_read"])

        PermissionChecker(registry).authorize(reader, "GET", "/posts")

        assert PermissionChecker(registry).authorize(reader, "GET", "/roles") == "roles_read"


class TestPermissionRegistry:
    """Test the per-method registry."""

    def test_starts_empty(self):
        registry = PermissionRegistry()

        for method in HttpMethod:
            assert registry.snapshot(method) == frozenset()

    def test_register_is_idempotent(self):
        registry = PermissionRegistry()

        assert registry.register(HttpMethod.GET, "posts_read") is True
        assert registry.register(HttpMethod.GET, "posts_read") is False
        assert registry.snapshot(HttpMethod.GET) == frozenset({"posts_read"})
        assert registry.snapshot(HttpMethod.POST) == frozenset()

    def test_clear(self):
        registry = PermissionRegistry()
        registry.register(HttpMethod.PUT, "posts_update")

        registry.clear()

        assert registry.snapshot(HttpMethod.PUT) == frozenset()

    def test_concurrent_register(self):
        """Parallel inserts are not lost."""
        registry = PermissionRegistry()
        names = [f"module{i}_read" for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda name: registry.register(HttpMethod.GET, name), names * 2))

        assert registry.snapshot(HttpMethod.GET) == frozenset(names)
        assert results.count(True) == len(names)
