"""Pydantic models for API request/response serialization.

These models mirror the automod dataclasses and provide JSON serialization
for the FastAPI endpoints. Enum-valued rule fields are plain strings on the
request side so that malformed rules reach ``validate_rule`` and come back
as a full error list instead of a schema rejection.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from automod.rules.models import ContentAuthor, ContentItem, TargetType, TriggerType
from automod.workflows.models import WorkflowType


# ---------------------------------------------------------------------------
# Rule models
# ---------------------------------------------------------------------------


class ScheduleModel(BaseModel):
    enabled: bool = False
    start_time: str = ""
    end_time: str = ""
    days_of_week: list[int] = Field(default_factory=list)


class CreateRuleRequest(BaseModel):
    """Request body for creating a rule."""

    name: str
    description: str = ""
    priority: Optional[int] = None
    trigger_type: str
    target_types: list[str] = Field(default_factory=list)
    conditions: list[dict[str, Any]] = Field(default_factory=list)
    actions: list[dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True
    cooldown_period: Optional[int] = None
    max_triggers_per_hour: Optional[int] = None
    whitelist_users: list[str] = Field(default_factory=list)
    blacklist_users: list[str] = Field(default_factory=list)
    exempt_roles: list[str] = Field(default_factory=list)
    schedule: Optional[ScheduleModel] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateRuleRequest(BaseModel):
    """Request body for updating a rule. Only the fields sent are changed."""

    name: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[int] = None
    trigger_type: Optional[str] = None
    target_types: Optional[list[str]] = None
    conditions: Optional[list[dict[str, Any]]] = None
    actions: Optional[list[dict[str, Any]]] = None
    is_active: Optional[bool] = None
    cooldown_period: Optional[int] = None
    max_triggers_per_hour: Optional[int] = None
    whitelist_users: Optional[list[str]] = None
    blacklist_users: Optional[list[str]] = None
    exempt_roles: Optional[list[str]] = None
    schedule: Optional[ScheduleModel] = None
    metadata: Optional[dict[str, Any]] = None


class RuleResponse(BaseModel):
    """Public representation of a rule."""

    id: str
    name: str
    description: str = ""
    priority: int
    trigger_type: str
    target_types: list[str]
    conditions: list[dict[str, Any]]
    actions: list[dict[str, Any]]
    is_active: bool
    cooldown_period: Optional[int] = None
    max_triggers_per_hour: Optional[int] = None
    whitelist_users: list[str] = Field(default_factory=list)
    blacklist_users: list[str] = Field(default_factory=list)
    exempt_roles: list[str] = Field(default_factory=list)
    schedule: Optional[ScheduleModel] = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuleValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class ToggleRuleRequest(BaseModel):
    """Omit ``is_active`` to flip the current state."""

    is_active: Optional[bool] = None


class BulkToggleRequest(BaseModel):
    rule_ids: list[str]
    is_active: bool


class BulkPriorityRequest(BaseModel):
    """New priorities keyed by rule id."""

    priorities: dict[str, int]


# ---------------------------------------------------------------------------
# Content & execution models
# ---------------------------------------------------------------------------


class AuthorModel(BaseModel):
    id: str = ""
    account_age_days: int = 0
    karma: int = 0
    recent_post_count: int = 0


class ContentItemRequest(BaseModel):
    """The item to moderate, as supplied by the content service."""

    id: str
    target_type: TargetType
    author: AuthorModel = Field(default_factory=AuthorModel)
    text: str = ""
    title: str = ""
    links: list[str] = Field(default_factory=list)
    language: str = ""
    sentiment: Optional[float] = None
    image_labels: dict[str, float] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_item(self) -> ContentItem:
        return ContentItem(
            id=self.id,
            target_type=self.target_type,
            author=ContentAuthor(**self.author.model_dump()),
            text=self.text,
            title=self.title,
            links=list(self.links),
            language=self.language,
            sentiment=self.sentiment,
            image_labels=dict(self.image_labels),
            metadata=dict(self.metadata),
        )


class ExecuteRequest(BaseModel):
    """Request body for running the moderation pipeline on one item."""

    content: ContentItemRequest
    trigger_types: list[TriggerType] = Field(default_factory=list)
    skip_cooldown: bool = False


class ConditionResultResponse(BaseModel):
    type: str
    matched: bool
    reason: str = ""


class RuleTestResponse(BaseModel):
    rule_id: str
    matched: bool
    conditions: list[ConditionResultResponse] = Field(default_factory=list)
    triggered_conditions: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Action log & statistics models
# ---------------------------------------------------------------------------


class ActionRecordResponse(BaseModel):
    """Public representation of a moderation action record."""

    id: str
    rule_id: str
    rule_name: str = ""
    target_type: str
    target_id: str
    action_types: list[str] = Field(default_factory=list)
    status: str
    timestamp: str
    is_automatic: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuleStatisticsResponse(BaseModel):
    rule_id: Optional[str] = None
    window_start: str
    window_end: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 1.0
    histogram: dict[str, int] = Field(default_factory=dict)
    last_triggered: Optional[str] = None


# ---------------------------------------------------------------------------
# Workflow models
# ---------------------------------------------------------------------------


class ProposedChangesModel(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    category_id: Optional[str] = None
    tags: Optional[list[str]] = None


class CreateWorkflowRequest(BaseModel):
    """Request body for opening a workflow on a content item."""

    content_id: str
    workflow_type: WorkflowType = WorkflowType.UPDATE
    proposed_changes: ProposedChangesModel = Field(default_factory=ProposedChangesModel)


class WorkflowDecisionRequest(BaseModel):
    """Request body for approving or rejecting a workflow."""

    comment: str = ""


class AssignWorkflowRequest(BaseModel):
    assignee_id: str


class WorkflowResponse(BaseModel):
    """Public representation of a workflow."""

    id: str
    content_id: str
    workflow_type: str
    status: str
    requested_by: str
    assigned_to: Optional[str] = None
    reviewed_by: Optional[str] = None
    proposed_changes: dict[str, Any] = Field(default_factory=dict)
    review_comments: str = ""
    created_at: str = ""
    updated_at: str = ""
    reviewed_at: Optional[str] = None
    completed_at: Optional[str] = None
