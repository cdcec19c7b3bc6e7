"""Role-based access checks.

Role hierarchy: owner > admin > moderator > reviewer > member
"""

from __future__ import annotations

from typing import Iterable

from automod.auth.models import Role
from automod.exceptions import PermissionDenied


def has_permission(roles: Iterable[Role | str], required_role: Role) -> bool:
    """Check if any of a user's roles meets or exceeds the required role level.

    Parameters
    ----------
    roles:
        Roles reported by the identity store for the user.
    required_role:
        The minimum role required.

    Returns
    -------
    bool
        True if the highest role level >= required role level.
    """
    levels = [(r if isinstance(r, Role) else Role(r)).level for r in roles]
    return bool(levels) and max(levels) >= required_role.level


def can_review(roles: Iterable[Role | str]) -> bool:
    """Return True if the roles grant workflow reviewer capability."""
    return has_permission(roles, Role.reviewer)


def require_role(user_id: str, roles: Iterable[Role | str], role: Role) -> None:
    """Validate that a user has at least the given role.

    Raises ``PermissionDenied`` if the user lacks the required role. The web
    layer turns it into a 403.
    """
    if not has_permission(roles, role):
        raise PermissionDenied(f"User '{user_id}' requires role '{role.value}' or higher")
