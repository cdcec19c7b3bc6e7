"""Protocol definitions for the systems automod acts through.

The content store, identity provider and notification system live outside
this package. Only their interfaces are defined here, plus small in-memory
implementations used by the CLI and the test suite.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from automod.auth.models import Role
from automod.exceptions import NotFound
from automod.rules.models import ContentItem

logger = logging.getLogger(__name__)


@runtime_checkable
class ContentStore(Protocol):
    """Owns posts, comments and articles."""

    def get_content_item(self, content_id: str) -> ContentItem:
        """Return the item or raise ``NotFound``."""
        ...

    def apply_delta(self, content_id: str, delta: dict[str, Any]) -> None:
        """Merge field changes into the live item."""
        ...

    def remove_content(self, content_id: str, reason: str) -> None:
        ...

    def flag_content(self, content_id: str, reason: str) -> None:
        ...

    def quarantine_content(self, content_id: str, reason: str) -> None:
        ...


@runtime_checkable
class IdentityStore(Protocol):
    """Owns users and their workspace roles."""

    def get_user_roles(self, user_id: str) -> set[Role]:
        ...

    def suspend_user(self, user_id: str, duration_minutes: Optional[int], reason: str) -> None:
        """Suspend or ban a user. ``None`` duration means permanent."""
        ...


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of a message to a user or group."""

    def notify(self, target: str, message: str) -> None:
        ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


@dataclass
class InMemoryContentStore:
    items: dict[str, ContentItem] = field(default_factory=dict)
    applied: dict[str, dict[str, Any]] = field(default_factory=dict)
    removed: dict[str, str] = field(default_factory=dict)
    flagged: dict[str, list[str]] = field(default_factory=dict)
    quarantined: dict[str, str] = field(default_factory=dict)

    def add(self, item: ContentItem) -> None:
        self.items[item.id] = item

    def get_content_item(self, content_id: str) -> ContentItem:
        if content_id not in self.items:
            raise NotFound("Content", content_id)
        return self.items[content_id]

    def apply_delta(self, content_id: str, delta: dict[str, Any]) -> None:
        self.get_content_item(content_id)
        self.applied.setdefault(content_id, {}).update(delta)

    def remove_content(self, content_id: str, reason: str) -> None:
        self.get_content_item(content_id)
        self.removed[content_id] = reason

    def flag_content(self, content_id: str, reason: str) -> None:
        self.get_content_item(content_id)
        self.flagged.setdefault(content_id, []).append(reason)

    def quarantine_content(self, content_id: str, reason: str) -> None:
        self.get_content_item(content_id)
        self.quarantined[content_id] = reason


@dataclass
class InMemoryIdentityStore:
    roles: dict[str, set[Role]] = field(default_factory=dict)
    suspensions: dict[str, Optional[int]] = field(default_factory=dict)

    def get_user_roles(self, user_id: str) -> set[Role]:
        return set(self.roles.get(user_id, set()))

    def suspend_user(self, user_id: str, duration_minutes: Optional[int], reason: str) -> None:
        self.suspensions[user_id] = duration_minutes


@dataclass
class RecordingNotifier:
    """Keeps every notification in ``sent`` instead of delivering it."""

    sent: list[tuple[str, str]] = field(default_factory=list)

    def notify(self, target: str, message: str) -> None:
        logger.debug("Notification to %s: %s", target, message)
        self.sent.append((target, message))
