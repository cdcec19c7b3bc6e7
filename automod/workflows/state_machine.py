"""Workflow status transitions.

::

    pending --approve--> approved --complete--> completed
       |
       +----reject-----> rejected

``rejected`` and ``completed`` are terminal. Every function mutates the
workflow in place and returns it; a move out of a state that does not allow
it raises ``InvalidTransition``. Reviewer capability is checked by
``WorkflowStore``, not here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from automod.exceptions import InvalidTransition, ValidationError
from automod.workflows.models import Workflow, WorkflowStatus, WorkflowType

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({WorkflowStatus.APPROVED, WorkflowStatus.REJECTED}),
    WorkflowStatus.APPROVED: frozenset({WorkflowStatus.COMPLETED}),
    WorkflowStatus.REJECTED: frozenset(),
    WorkflowStatus.COMPLETED: frozenset(),
}


def can_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _move(workflow: Workflow, target: WorkflowStatus) -> None:
    if not can_transition(workflow.status, target):
        raise InvalidTransition(workflow.status.value, target.value)
    logger.info("Workflow %s: %s -> %s", workflow.id, workflow.status.value, target.value)
    workflow.status = target


def assign(workflow: Workflow, assignee_id: str) -> Workflow:
    """Hand a pending workflow to a reviewer. The status stays pending."""
    if workflow.status != WorkflowStatus.PENDING:
        raise InvalidTransition(workflow.status.value, "assigned")
    workflow.assigned_to = assignee_id
    workflow.touch()
    return workflow


def approve(workflow: Workflow, reviewer_id: str, comment: str = "") -> Workflow:
    _move(workflow, WorkflowStatus.APPROVED)
    workflow.reviewed_by = reviewer_id
    workflow.review_comments = comment or "Approved"
    workflow.reviewed_at = workflow.touch()
    return workflow


def reject(
    workflow: Workflow,
    reviewer_id: str,
    comment: str = "",
    require_comment: bool = True,
) -> Workflow:
    """Reject a pending workflow.

    With *require_comment* set, a blank comment raises ``ValidationError``
    and the workflow is left untouched.
    """
    if workflow.status != WorkflowStatus.PENDING:
        raise InvalidTransition(workflow.status.value, WorkflowStatus.REJECTED.value)
    if require_comment and not comment.strip():
        raise ValidationError(["A review comment is required to reject a workflow"])
    _move(workflow, WorkflowStatus.REJECTED)
    workflow.reviewed_by = reviewer_id
    workflow.review_comments = comment or "Rejected"
    workflow.reviewed_at = workflow.touch()
    return workflow


def complete(workflow: Workflow) -> Workflow:
    """Mark an approved workflow done once its delta has been merged."""
    _move(workflow, WorkflowStatus.COMPLETED)
    workflow.completed_at = workflow.touch()
    return workflow


def delta_for(workflow: Workflow, extra: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """The field changes the content store should merge for *workflow*."""
    if workflow.workflow_type == WorkflowType.PUBLISH:
        delta: dict[str, Any] = {"status": "published"}
    elif workflow.workflow_type == WorkflowType.ARCHIVE:
        delta = {"status": "archived"}
    else:
        delta = workflow.proposed_changes.to_delta()
    if extra:
        delta.update(extra)
    return delta
