"""Shared store and collaborator instances for the API routers.

The content store, identity store and notifier stand in for the external
services automod talks to; a deployment swaps them through ``Services``.
Routers receive the bundle through ``Depends(get_services)``, which tests
override with one rooted in a temporary directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from automod.audit.recorder import AuditRecorder
from automod.collaborators import InMemoryContentStore, InMemoryIdentityStore, RecordingNotifier
from automod.config import get_settings
from automod.rules.evaluator import RuleEvaluator
from automod.rules.executor import ActionExecutor
from automod.rules.pipeline import ModerationPipeline
from automod.rules.rule_store import RuleStore
from automod.workflows.workflow_store import WorkflowStore


@dataclass
class Services:
    rules: RuleStore
    recorder: AuditRecorder
    workflows: WorkflowStore
    content: InMemoryContentStore
    identity: InMemoryIdentityStore
    notifier: RecordingNotifier
    pipeline: ModerationPipeline


def build_services(data_dir: Optional[str | Path] = None) -> Services:
    """Wire stores, collaborators and the pipeline under *data_dir*."""
    settings = get_settings()
    root = Path(data_dir) if data_dir else settings.data_dir

    content = InMemoryContentStore()
    identity = InMemoryIdentityStore()
    notifier = RecordingNotifier()
    rules = RuleStore(root / "rules")
    recorder = AuditRecorder(root / "audit")

    pipeline = ModerationPipeline(
        rule_store=rules,
        evaluator=RuleEvaluator(identity=identity, history=recorder),
        executor=ActionExecutor(
            content_store=content,
            identity=identity,
            notifier=notifier,
            recorder=recorder,
        ),
        settings=settings,
    )
    return Services(
        rules=rules,
        recorder=recorder,
        workflows=WorkflowStore(identity=identity, base_dir=root / "workflows", content=content),
        content=content,
        identity=identity,
        notifier=notifier,
        pipeline=pipeline,
    )


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_services: Services | None = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services
