"""
Role assignment for new users.

Turns the role names requested at registration into stored role ids.
"""

from typing import Any, List, Mapping, Optional

from loguru import logger

from .database import RoleDatabase
from .errors import NoMatchingRoles

DEFAULT_ROLE = "user"


def requested_role_names(body: Optional[Mapping[str, Any]]) -> List[str]:
    """
    Get the role names a creation request asks for.

    Falls back to ``[DEFAULT_ROLE]`` when ``roles`` is absent, not a list,
    or empty.
    """
    roles = body.get("roles") if body else None
    if isinstance(roles, list) and roles:
        return [str(name) for name in roles]
    return [DEFAULT_ROLE]


class RoleAssigner:
    """Resolves requested role names to role ids."""

    def __init__(self, roles: RoleDatabase):
        self.roles = roles

    def resolve_roles(self, names: Optional[List[str]]) -> List[str]:
        """
        Resolve role names to ids.

        Names that match no role are dropped as long as one name matches.

        Args:
            names: Requested role names; empty or None means the default role

        Returns:
            Ids of the matching roles

        Raises:
            NoMatchingRoles: If none of the names exists, including the
                default role not being seeded
        """
        if not names:
            names = [DEFAULT_ROLE]

        found = self.roles.find_roles_by_names(names)
        if not found:
            logger.warning(f"No roles found for {names}")
            raise NoMatchingRoles()

        return [role.role_id for role in found]
