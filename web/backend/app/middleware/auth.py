"""Auth middleware -- FastAPI dependencies for identifying the acting user.

Authentication happens upstream: the gateway in front of this API resolves
the session and forwards the result as headers.

1. ``X-User-Id: <user id>``
2. ``X-User-Roles: <role>[,<role>...]`` (optional, defaults to member)

The reported roles are written through to the identity store so that role
lookups inside automod (exempt roles, reviewer capability) agree with them.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from automod.auth.models import Actor, Role
from web.backend.app.services import Services, get_services


def _parse_roles(raw: Optional[str]) -> set[Role]:
    if not raw:
        return {Role.member}
    roles: set[Role] = set()
    for part in raw.split(","):
        name = part.strip().lower()
        if not name:
            continue
        try:
            roles.add(Role(name))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown role '{name}'",
            )
    return roles or {Role.member}


async def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_roles: Optional[str] = Header(None, alias="X-User-Roles"),
    services: Services = Depends(get_services),
) -> Actor:
    """FastAPI dependency that returns the acting user.

    Raises ``401 Unauthorized`` if no user id was forwarded.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    actor = Actor(user_id=x_user_id, roles=_parse_roles(x_user_roles))
    services.identity.roles[actor.user_id] = set(actor.roles)
    return actor
