"""Evaluate-then-execute pipeline.

Ties the rule store, evaluator and executor together for one content item
and summarises what happened into a single recommendation.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from automod.config import Settings, get_settings
from automod.rules.evaluator import RuleEvaluator
from automod.rules.executor import ActionExecutor, ActionOutcome
from automod.rules.models import (
    ContentItem,
    EscalateAction,
    EscalationLevel,
    MatchResult,
    Rule,
    TriggerType,
    utcnow,
)
from automod.rules.rule_store import RuleStore

logger = logging.getLogger(__name__)

_LEVEL_ORDER = [EscalationLevel.LOW, EscalationLevel.MEDIUM, EscalationLevel.HIGH]


class Recommendation(str, Enum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    ESCALATE = "ESCALATE"
    REJECT = "REJECT"


@dataclass
class PipelineResult:
    """Summary of one pipeline run over a content item."""

    target_id: str
    execution_id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")
    rules_evaluated: int = 0
    matches: list[MatchResult] = field(default_factory=list)
    outcomes: list[ActionOutcome] = field(default_factory=list)
    recommendation: Recommendation = Recommendation.APPROVE
    needs_manual_review: bool = False
    escalation_level: Optional[EscalationLevel] = None
    processing_ms: float = 0.0

    @property
    def rules_triggered(self) -> int:
        return len(self.matches)

    @property
    def actions_executed(self) -> int:
        return sum(1 for o in self.outcomes for r in o.results if r.success)

    @property
    def final_actions(self) -> list[str]:
        """Distinct action types that ran successfully, in first-run order."""
        seen: list[str] = []
        for outcome in self.outcomes:
            for r in outcome.results:
                if r.success and r.action_type.value not in seen:
                    seen.append(r.action_type.value)
        return seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "target_id": self.target_id,
            "recommendation": self.recommendation.value,
            "summary": {
                "rules_evaluated": self.rules_evaluated,
                "rules_triggered": self.rules_triggered,
                "actions_executed": self.actions_executed,
                "needs_manual_review": self.needs_manual_review,
                "escalation_level": self.escalation_level.value if self.escalation_level else None,
                "processing_ms": round(self.processing_ms, 2),
            },
            "triggered_rules": [
                {
                    "rule_id": m.rule_id,
                    "rule_name": m.rule.name,
                    "priority": m.rule.priority,
                    "conditions": [
                        {"type": c.type.value, "matched": c.matched, "reason": c.reason}
                        for c in m.conditions
                    ],
                }
                for m in self.matches
            ],
            "outcomes": [
                {
                    "rule_id": o.match.rule_id,
                    "status": o.status.value,
                    "record_id": o.record.id,
                    "actions": [r.to_dict() for r in o.results],
                }
                for o in self.outcomes
            ],
            "final_actions": self.final_actions,
        }


class ModerationPipeline:
    """Runs the active rules for an item and applies the matches' actions."""

    def __init__(
        self,
        rule_store: RuleStore,
        evaluator: RuleEvaluator,
        executor: ActionExecutor,
        settings: Optional[Settings] = None,
    ) -> None:
        self._rules = rule_store
        self._evaluator = evaluator
        self._executor = executor
        self._settings = settings or get_settings()

    @property
    def evaluator(self) -> RuleEvaluator:
        return self._evaluator

    def run(
        self,
        item: ContentItem,
        *,
        trigger_types: Optional[Iterable[TriggerType]] = None,
        skip_cooldown: bool = False,
        now: Optional[datetime] = None,
    ) -> PipelineResult:
        """Evaluate *item* and execute every match, highest priority first."""
        started = time.perf_counter()
        rules = self._rules.active_rules(item.target_type)
        result = self._evaluate(item, rules, trigger_types, skip_cooldown, now)

        for match in result.matches:
            result.outcomes.append(self._executor.execute(match))

        self._summarise(result)
        result.processing_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Moderated %s %s: %d/%d rules triggered, recommendation %s",
            item.target_type.value,
            item.id,
            result.rules_triggered,
            result.rules_evaluated,
            result.recommendation.value,
        )
        return result

    def simulate(
        self,
        item: ContentItem,
        *,
        rules: Optional[list[Rule]] = None,
        now: Optional[datetime] = None,
    ) -> PipelineResult:
        """Evaluate without executing anything or consulting cooldowns."""
        started = time.perf_counter()
        if rules is None:
            rules = self._rules.active_rules(item.target_type)
        result = self._evaluate(item, rules, None, True, now)
        self._summarise(result)
        result.processing_ms = (time.perf_counter() - started) * 1000
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _evaluate(
        self,
        item: ContentItem,
        rules: list[Rule],
        trigger_types: Optional[Iterable[TriggerType]],
        skip_cooldown: bool,
        now: Optional[datetime],
    ) -> PipelineResult:
        now = now or utcnow()
        applicable = [r for r in rules if r.is_active and r.applies_to(item.target_type)]
        matches = self._evaluator.evaluate(
            item,
            applicable,
            now=now,
            trigger_types=trigger_types,
            skip_cooldown=skip_cooldown,
        )
        return PipelineResult(target_id=item.id, rules_evaluated=len(applicable), matches=matches)

    def _summarise(self, result: PipelineResult) -> None:
        matched_actions = [a for m in result.matches for a in m.actions]
        levels = [a.level for a in matched_actions if isinstance(a, EscalateAction)]

        result.needs_manual_review = any(
            isinstance(a, EscalateAction) or a.require_manual_review for a in matched_actions
        )
        result.escalation_level = max(levels, key=_LEVEL_ORDER.index) if levels else None
        result.recommendation = recommend(result.matches, self._settings.reject_priority_threshold)


def recommend(matches: list[MatchResult], reject_threshold: int = 8) -> Recommendation:
    """Reduce a set of matches to one recommendation.

    No matches approve. Any match at or above *reject_threshold* rejects.
    Otherwise an escalation action escalates and anything else asks for review.
    """
    if not matches:
        return Recommendation.APPROVE
    if any(m.rule.priority >= reject_threshold for m in matches):
        return Recommendation.REJECT
    if any(isinstance(a, EscalateAction) for m in matches for a in m.actions):
        return Recommendation.ESCALATE
    return Recommendation.REVIEW
