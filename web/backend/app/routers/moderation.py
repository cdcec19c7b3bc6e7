"""Moderation router -- run the pipeline on content and read the action log."""

from __future__ import annotations

from dataclasses import asdict
from datetime import timedelta
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from automod.audit.recorder import ModerationActionRecord, OutcomeStatus
from automod.auth.models import Actor
from web.backend.app.middleware.auth import get_current_actor
from web.backend.app.models.api import (
    ActionRecordResponse,
    ContentItemRequest,
    ExecuteRequest,
    RuleStatisticsResponse,
)
from web.backend.app.services import Services, get_services

router = APIRouter(prefix="/api/moderation", tags=["moderation"])


def _record_response(record: ModerationActionRecord) -> ActionRecordResponse:
    return ActionRecordResponse(**record.to_dict())


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


@router.post("/execute", summary="Moderate a content item")
async def execute(
    body: ExecuteRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Evaluate the active rules for the item and carry out every match's actions.

    The item is registered with the content store first so content actions
    (delete, flag, quarantine) have something to act on.
    """
    item = body.content.to_item()
    services.content.add(item)
    trigger_types = body.trigger_types or None
    result = services.pipeline.run(
        item,
        trigger_types=trigger_types,
        skip_cooldown=body.skip_cooldown,
    )
    return result.to_dict()


@router.post("/simulate", summary="Dry-run all active rules against a content item")
async def simulate(
    body: ContentItemRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Report which rules would match. No action is taken or recorded."""
    return services.pipeline.simulate(body.to_item()).to_dict()


# ---------------------------------------------------------------------------
# Action log & statistics
# ---------------------------------------------------------------------------


@router.get(
    "/records",
    response_model=list[ActionRecordResponse],
    summary="Query moderation action records",
)
async def list_records(
    rule_id: Optional[str] = None,
    target_id: Optional[str] = None,
    status: Optional[OutcomeStatus] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    services: Services = Depends(get_services),
):
    records = services.recorder.get_records(
        rule_id=rule_id,
        target_id=target_id,
        status=status,
        limit=limit,
    )
    return [_record_response(r) for r in records]


@router.get(
    "/stats",
    response_model=RuleStatisticsResponse,
    summary="Trigger counts and success rate",
)
async def statistics(
    rule_id: Optional[str] = None,
    days: int = Query(default=7, ge=1, le=365),
    services: Services = Depends(get_services),
):
    stats = services.recorder.statistics(rule_id=rule_id, window=timedelta(days=days))
    return RuleStatisticsResponse(**asdict(stats))


@router.get("/overview", summary="Action distribution and most active rules")
async def overview(
    days: int = Query(default=30, ge=1, le=365),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    summary = services.recorder.overview(window=timedelta(days=days))
    summary["pending_workflows"] = services.workflows.pending_count()
    return summary
