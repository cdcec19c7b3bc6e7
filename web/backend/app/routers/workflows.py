"""Workflows router -- open, review and complete content workflows."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from automod.auth.models import Actor
from automod.workflows.models import Workflow, WorkflowStatus
from web.backend.app.middleware.auth import get_current_actor
from web.backend.app.models.api import (
    AssignWorkflowRequest,
    CreateWorkflowRequest,
    WorkflowDecisionRequest,
    WorkflowResponse,
)
from web.backend.app.services import Services, get_services

router = APIRouter(prefix="/api", tags=["workflows"])


def _workflow_response(w: Workflow) -> WorkflowResponse:
    return WorkflowResponse(**w.to_dict())


@router.post(
    "/workflows",
    response_model=WorkflowResponse,
    summary="Open a workflow for a content change",
    status_code=status.HTTP_201_CREATED,
)
async def create_workflow(
    body: CreateWorkflowRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    workflow = services.workflows.create(
        content_id=body.content_id,
        requested_by=actor.user_id,
        workflow_type=body.workflow_type,
        proposed_changes=body.proposed_changes.model_dump(),
    )
    return _workflow_response(workflow)


@router.get(
    "/workflows",
    response_model=list[WorkflowResponse],
    summary="List workflows, newest first",
)
async def list_workflows(
    status: Optional[WorkflowStatus] = None,
    content_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    services: Services = Depends(get_services),
):
    workflows = services.workflows.list_workflows(
        status=status,
        content_id=content_id,
        assigned_to=assigned_to,
    )
    return [_workflow_response(w) for w in workflows]


@router.get(
    "/workflows/pending/count",
    summary="Number of workflows awaiting review",
)
async def pending_count(services: Services = Depends(get_services)):
    return {"count": services.workflows.pending_count()}


@router.get(
    "/workflows/{workflow_id}",
    response_model=WorkflowResponse,
    summary="Get a workflow by ID",
)
async def get_workflow(workflow_id: str, services: Services = Depends(get_services)):
    return _workflow_response(services.workflows.get(workflow_id))


@router.post(
    "/workflows/{workflow_id}/assign",
    response_model=WorkflowResponse,
    summary="Assign a pending workflow to a reviewer",
)
async def assign_workflow(
    workflow_id: str,
    body: AssignWorkflowRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    workflow = services.workflows.assign(workflow_id, body.assignee_id, assigned_by=actor.user_id)
    return _workflow_response(workflow)


@router.post(
    "/workflows/{workflow_id}/approve",
    response_model=WorkflowResponse,
    summary="Approve a pending workflow",
)
async def approve_workflow(
    workflow_id: str,
    body: WorkflowDecisionRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    return _workflow_response(services.workflows.approve(workflow_id, actor.user_id, body.comment))


@router.post(
    "/workflows/{workflow_id}/reject",
    response_model=WorkflowResponse,
    summary="Reject a pending workflow",
)
async def reject_workflow(
    workflow_id: str,
    body: WorkflowDecisionRequest,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    return _workflow_response(services.workflows.reject(workflow_id, actor.user_id, body.comment))


@router.post(
    "/workflows/{workflow_id}/complete",
    response_model=WorkflowResponse,
    summary="Apply an approved workflow's changes and complete it",
)
async def complete_workflow(
    workflow_id: str,
    actor: Actor = Depends(get_current_actor),
    services: Services = Depends(get_services),
):
    return _workflow_response(services.workflows.complete(workflow_id, services.content))
