"""Automod exception hierarchy.

All automod-specific exceptions inherit from AutomodError. None of them is
fatal; callers are expected to catch and surface them.
"""

from __future__ import annotations


class AutomodError(Exception):
    """Base exception for all automod errors."""


class ValidationError(AutomodError):
    """Raised when a rule or workflow payload is malformed.

    Carries every issue found, not just the first one. Named the same as
    ``pydantic.ValidationError``; import it qualified where both are in scope.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class InvalidTransition(AutomodError):
    """Raised when a workflow is moved out of a state that does not allow it."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move workflow from '{current}' to '{target}'")


class ActionExecutionFailure(AutomodError):
    """Raised when a single moderation action cannot be carried out.

    The executor catches it and records it on the action's result; sibling
    actions keep running.
    """

    def __init__(self, action_type: str, reason: str) -> None:
        self.action_type = action_type
        self.reason = reason
        super().__init__(f"{action_type} failed: {reason}")


class NotFound(AutomodError):
    """Raised when a referenced rule, workflow or content item does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class PermissionDenied(AutomodError):
    """Raised when a user lacks the role an operation requires."""
