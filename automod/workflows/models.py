"""Workflow records: a proposed change to a content item awaiting review."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from automod.rules.models import utcnow


class WorkflowStatus(str, Enum):
    """pending -> approved | rejected; approved -> completed."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.REJECTED, WorkflowStatus.COMPLETED)


class WorkflowType(str, Enum):
    UPDATE = "UPDATE"
    PUBLISH = "PUBLISH"
    ARCHIVE = "ARCHIVE"


@dataclass
class ProposedChanges:
    """Field changes to merge into the content item once approved."""

    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    category_id: Optional[str] = None
    tags: Optional[list[str]] = None

    def to_delta(self) -> dict[str, Any]:
        """Only the fields that were actually proposed."""
        return {
            k: v
            for k, v in (
                ("title", self.title),
                ("content", self.content),
                ("excerpt", self.excerpt),
                ("category_id", self.category_id),
                ("tags", self.tags),
            )
            if v is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ProposedChanges:
        data = data or {}
        tags = data.get("tags")
        return cls(
            title=data.get("title"),
            content=data.get("content"),
            excerpt=data.get("excerpt"),
            category_id=data.get("category_id"),
            tags=list(tags) if tags is not None else None,
        )


@dataclass
class Workflow:
    content_id: str
    requested_by: str
    workflow_type: WorkflowType = WorkflowType.UPDATE
    proposed_changes: ProposedChanges = field(default_factory=ProposedChanges)
    status: WorkflowStatus = WorkflowStatus.PENDING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    assigned_to: Optional[str] = None
    reviewed_by: Optional[str] = None
    review_comments: str = ""
    created_at: str = field(default_factory=lambda: utcnow().isoformat())
    updated_at: str = ""
    reviewed_at: Optional[str] = None
    completed_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = self.created_at

    def touch(self) -> str:
        self.updated_at = utcnow().isoformat()
        return self.updated_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content_id": self.content_id,
            "workflow_type": self.workflow_type.value,
            "status": self.status.value,
            "requested_by": self.requested_by,
            "assigned_to": self.assigned_to,
            "reviewed_by": self.reviewed_by,
            "proposed_changes": self.proposed_changes.to_delta(),
            "review_comments": self.review_comments,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "reviewed_at": self.reviewed_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Workflow:
        return cls(
            id=data["id"],
            content_id=data["content_id"],
            workflow_type=WorkflowType(data.get("workflow_type", WorkflowType.UPDATE.value)),
            status=WorkflowStatus(data.get("status", WorkflowStatus.PENDING.value)),
            requested_by=data.get("requested_by", ""),
            assigned_to=data.get("assigned_to"),
            reviewed_by=data.get("reviewed_by"),
            proposed_changes=ProposedChanges.from_dict(data.get("proposed_changes")),
            review_comments=data.get("review_comments", ""),
            created_at=data.get("created_at") or utcnow().isoformat(),
            updated_at=data.get("updated_at", ""),
            reviewed_at=data.get("reviewed_at"),
            completed_at=data.get("completed_at"),
        )
