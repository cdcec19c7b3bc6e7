"""Rules router -- rule CRUD, activation, bulk operations and dry runs."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from automod.auth.models import Actor, Role
from automod.auth.permissions import require_role
from automod.rules.evaluator import RuleTestResult
from automod.rules.models import Rule, TargetType, TriggerType
from automod.rules.validator import validate_rule
from web.backend.app.middleware.auth import get_current_actor
from web.backend.app.models.api import (
    BulkPriorityRequest,
    BulkToggleRequest,
    ConditionResultResponse,
    ContentItemRequest,
    CreateRuleRequest,
    RuleResponse,
    RuleTestResponse,
    RuleValidationResponse,
    ToggleRuleRequest,
    UpdateRuleRequest,
)
from web.backend.app.services import Services, get_services

router = APIRouter(prefix="/api", tags=["rules"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _rule_response(rule: Rule) -> RuleResponse:
    return RuleResponse(**rule.to_dict())


def _test_response(result: RuleTestResult) -> RuleTestResponse:
    return RuleTestResponse(
        rule_id=result.rule_id,
        matched=result.matched,
        conditions=[
            ConditionResultResponse(type=c.type.value, matched=c.matched, reason=c.reason)
            for c in result.conditions
        ],
        triggered_conditions=result.triggered_conditions,
        recommended_actions=result.recommended_actions,
    )


def _require_moderator(actor: Actor) -> None:
    require_role(actor.user_id, actor.roles, Role.moderator)


# ---------------------------------------------------------------------------
# Bulk endpoints (registered before /rules/{rule_id} routes)
# ---------------------------------------------------------------------------


@router.post(
    "/rules/bulk/toggle",
    response_model=list[RuleResponse],
    summary="Activate or deactivate several rules",
)
async def bulk_toggle_rules(
    body: BulkToggleRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    _require_moderator(actor)
    return [_rule_response(r) for r in services.rules.bulk_toggle(body.rule_ids, body.is_active)]


@router.post(
    "/rules/bulk/priority",
    response_model=list[RuleResponse],
    summary="Reassign rule priorities",
)
async def bulk_update_priorities(
    body: BulkPriorityRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    _require_moderator(actor)
    return [_rule_response(r) for r in services.rules.bulk_update_priorities(body.priorities)]


@router.post(
    "/rules/validate",
    response_model=RuleValidationResponse,
    summary="Validate a rule without saving it",
)
async def validate_rule_draft(body: CreateRuleRequest):
    """Return every problem with the draft; an empty list means it is valid."""
    result = validate_rule(body.model_dump())
    return RuleValidationResponse(is_valid=result.is_valid, errors=result.errors)


# ---------------------------------------------------------------------------
# Rule endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/rules",
    response_model=RuleResponse,
    summary="Create a new rule",
    status_code=status.HTTP_201_CREATED,
)
async def create_rule(
    body: CreateRuleRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    """Create a rule. Invalid drafts are rejected with every error listed."""
    _require_moderator(actor)
    draft = body.model_dump(exclude_none=True)
    return _rule_response(services.rules.create_rule(draft, created_by=actor.user_id))


@router.get(
    "/rules",
    response_model=list[RuleResponse],
    summary="List rules in evaluation order",
)
async def list_rules(
    is_active: Optional[bool] = None,
    trigger_type: Optional[TriggerType] = None,
    target_type: Optional[TargetType] = None,
    search: Optional[str] = None,
    services: Services = Depends(get_services),
):
    rules = services.rules.list_rules(
        is_active=is_active,
        trigger_type=trigger_type,
        target_type=target_type,
        search=search,
    )
    return [_rule_response(r) for r in rules]


@router.get(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    summary="Get a rule by ID",
)
async def get_rule(rule_id: str, services: Services = Depends(get_services)):
    return _rule_response(services.rules.get_rule(rule_id))


@router.put(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    summary="Update a rule",
)
async def update_rule(
    rule_id: str,
    body: UpdateRuleRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    """Change the fields present in the body; the merged rule is re-validated."""
    _require_moderator(actor)
    changes = body.model_dump(exclude_unset=True)
    return _rule_response(services.rules.update_rule(rule_id, changes))


@router.delete(
    "/rules/{rule_id}",
    summary="Delete a rule",
)
async def delete_rule(
    rule_id: str,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    _require_moderator(actor)
    services.rules.delete_rule(rule_id)
    return {"ok": True}


@router.put(
    "/rules/{rule_id}/toggle",
    response_model=RuleResponse,
    summary="Activate or deactivate a rule",
)
async def toggle_rule(
    rule_id: str,
    body: ToggleRuleRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    _require_moderator(actor)
    return _rule_response(services.rules.toggle_rule(rule_id, body.is_active))


@router.post(
    "/rules/{rule_id}/test",
    response_model=RuleTestResponse,
    summary="Dry-run one rule against sample content",
)
async def test_rule(
    rule_id: str,
    body: ContentItemRequest,
    services: Services = Depends(get_services),
):
    """Evaluate only the rule's conditions. Exclusions and cooldowns are ignored."""
    rule = services.rules.get_rule(rule_id)
    return _test_response(services.pipeline.evaluator.test_rule(rule, body.to_item()))
