"""File-based storage for content workflows.

Workflows live in ``workflows.json`` under ``<data_dir>/workflows/``. The
store loads a workflow, applies a state-machine transition and writes it
back. Moving a workflow out of ``pending`` requires reviewer capability,
which is looked up through the identity store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from automod.auth.permissions import can_review
from automod.collaborators import ContentStore, IdentityStore
from automod.config import get_settings
from automod.exceptions import AutomodError, InvalidTransition, NotFound, PermissionDenied
from automod.storage.json_store import JsonRecordStore
from automod.workflows import state_machine
from automod.workflows.models import ProposedChanges, Workflow, WorkflowStatus, WorkflowType

logger = logging.getLogger(__name__)


class WorkflowStore:
    """CRUD and review decisions for workflows."""

    def __init__(
        self,
        identity: Optional[IdentityStore] = None,
        base_dir: Optional[str | Path] = None,
        require_reject_comment: Optional[bool] = None,
        content: Optional[ContentStore] = None,
    ) -> None:
        settings = get_settings()
        self._identity = identity
        self._content = content
        self._records = JsonRecordStore(base_dir or settings.store_dir("workflows"), "workflows")
        self._require_reject_comment = (
            settings.require_reject_comment if require_reject_comment is None else require_reject_comment
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _save(self, workflow: Workflow) -> Workflow:
        self._records.replace(workflow.to_dict())
        return workflow

    def _require_reviewer(self, user_id: str) -> None:
        roles = self._identity.get_user_roles(user_id) if self._identity else set()
        if not can_review(roles):
            raise PermissionDenied(f"User '{user_id}' cannot review workflows")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(
        self,
        content_id: str,
        requested_by: str,
        workflow_type: WorkflowType = WorkflowType.UPDATE,
        proposed_changes: Optional[dict[str, Any] | ProposedChanges] = None,
    ) -> Workflow:
        """Open a pending workflow for *content_id*.

        When the store has a content store, the item must exist there;
        otherwise ``NotFound`` is raised and nothing is persisted.
        """
        if self._content is not None:
            self._content.get_content_item(content_id)
        if not isinstance(proposed_changes, ProposedChanges):
            proposed_changes = ProposedChanges.from_dict(proposed_changes)
        workflow = Workflow(
            content_id=content_id,
            requested_by=requested_by,
            workflow_type=WorkflowType(workflow_type),
            proposed_changes=proposed_changes,
        )
        self._records.create(workflow.to_dict())
        logger.info("Opened %s workflow %s for %s", workflow.workflow_type.value, workflow.id, content_id)
        return workflow

    def get(self, workflow_id: str) -> Workflow:
        data = self._records.get(workflow_id)
        if data is None:
            raise NotFound("Workflow", workflow_id)
        return Workflow.from_dict(data)

    def list_workflows(
        self,
        status: Optional[WorkflowStatus] = None,
        content_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> list[Workflow]:
        """Return workflows newest first, optionally filtered."""
        workflows = [Workflow.from_dict(r) for r in self._records.query()]
        if status is not None:
            workflows = [w for w in workflows if w.status == status]
        if content_id:
            workflows = [w for w in workflows if w.content_id == content_id]
        if assigned_to:
            workflows = [w for w in workflows if w.assigned_to == assigned_to]
        workflows.sort(key=lambda w: w.created_at, reverse=True)
        return workflows

    def pending_count(self) -> int:
        return len(self.list_workflows(status=WorkflowStatus.PENDING))

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def assign(self, workflow_id: str, assignee_id: str, assigned_by: str) -> Workflow:
        self._require_reviewer(assigned_by)
        return self._save(state_machine.assign(self.get(workflow_id), assignee_id))

    def approve(self, workflow_id: str, reviewer_id: str, comment: str = "") -> Workflow:
        self._require_reviewer(reviewer_id)
        return self._save(state_machine.approve(self.get(workflow_id), reviewer_id, comment))

    def reject(self, workflow_id: str, reviewer_id: str, comment: str = "") -> Workflow:
        self._require_reviewer(reviewer_id)
        workflow = state_machine.reject(
            self.get(workflow_id),
            reviewer_id,
            comment,
            require_comment=self._require_reject_comment,
        )
        return self._save(workflow)

    def complete(self, workflow_id: str, content_store: Optional[ContentStore] = None) -> Workflow:
        """Merge an approved workflow's delta into the content, then complete it.

        The status is checked first so nothing is merged for a workflow that
        cannot complete. If the merge fails the workflow stays approved.
        """
        content_store = content_store or self._content
        if content_store is None:
            raise AutomodError("No content store configured to apply workflow changes")
        workflow = self.get(workflow_id)
        if not state_machine.can_transition(workflow.status, WorkflowStatus.COMPLETED):
            raise InvalidTransition(workflow.status.value, WorkflowStatus.COMPLETED.value)
        content_store.apply_delta(workflow.content_id, state_machine.delta_for(workflow))
        return self._save(state_machine.complete(workflow))
