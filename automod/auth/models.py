"""Auth domain models: workspace roles and the acting user."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Role hierarchy: owner > admin > moderator > reviewer > member."""

    owner = "owner"
    admin = "admin"
    moderator = "moderator"
    reviewer = "reviewer"
    member = "member"

    @property
    def level(self) -> int:
        """Return numeric level for comparison (higher = more privileges)."""
        return {
            Role.owner: 50,
            Role.admin: 40,
            Role.moderator: 30,
            Role.reviewer: 20,
            Role.member: 10,
        }[self]


@dataclass
class Actor:
    """The user on whose behalf an operation runs.

    Identity is resolved by the external identity provider; automod only
    ever sees the id and the roles it reported.
    """

    user_id: str
    roles: set[Role] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.roles = {r if isinstance(r, Role) else Role(r) for r in self.roles}
