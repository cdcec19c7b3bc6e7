"""File-based storage for auto-moderation rules.

Rules live in ``rules.json`` under ``<data_dir>/rules/``. Every write goes
through ``validate_rule`` so the store never holds a rule without conditions
or actions.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from automod.config import get_settings
from automod.exceptions import NotFound, ValidationError
from automod.rules.models import Rule, TargetType, TriggerType, evaluation_order, utcnow
from automod.rules.validator import validate_rule
from automod.storage.json_store import JsonRecordStore

logger = logging.getLogger(__name__)

# Fields a caller may not overwrite through update_rule
_READ_ONLY = ("id", "created_by", "created_at", "updated_at")


class RuleStore:
    """CRUD and bulk operations over persisted rules."""

    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        settings = get_settings()
        self._default_priority = settings.default_rule_priority
        self._records = JsonRecordStore(base_dir or settings.store_dir("rules"), "rules")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_rule(self, draft: dict[str, Any], created_by: str = "") -> Rule:
        """Validate *draft* and persist it as a new rule."""
        data = {k: v for k, v in draft.items() if k not in _READ_ONLY}
        data.setdefault("priority", self._default_priority)
        result = validate_rule(data)
        if not result.is_valid:
            raise ValidationError(result.errors)

        rule = Rule.from_dict(data)
        rule.created_by = created_by
        self._records.create(rule.to_dict())
        logger.info("Created rule %s (%s)", rule.id, rule.name)
        return rule

    def get_rule(self, rule_id: str) -> Rule:
        """Return the rule or raise ``NotFound``."""
        data = self._records.get(rule_id)
        if data is None:
            raise NotFound("Rule", rule_id)
        return Rule.from_dict(data)

    def list_rules(
        self,
        *,
        is_active: Optional[bool] = None,
        trigger_type: Optional[TriggerType] = None,
        target_type: Optional[TargetType] = None,
        search: Optional[str] = None,
    ) -> list[Rule]:
        """Return rules in evaluation order, optionally filtered."""
        rules = [Rule.from_dict(r) for r in self._records.query()]

        if is_active is not None:
            rules = [r for r in rules if r.is_active == is_active]
        if trigger_type is not None:
            rules = [r for r in rules if r.trigger_type == trigger_type]
        if target_type is not None:
            rules = [r for r in rules if r.applies_to(target_type)]
        if search:
            needle = search.lower()
            rules = [
                r for r in rules if needle in r.name.lower() or needle in r.description.lower()
            ]

        return evaluation_order(rules)

    def active_rules(self, target_type: Optional[TargetType] = None) -> list[Rule]:
        return self.list_rules(is_active=True, target_type=target_type)

    def update_rule(self, rule_id: str, changes: dict[str, Any]) -> Rule:
        """Merge *changes* into a rule, re-validating the result."""
        current = self.get_rule(rule_id).to_dict()
        merged = {**current, **{k: v for k, v in changes.items() if k not in _READ_ONLY}}
        result = validate_rule(merged)
        if not result.is_valid:
            raise ValidationError(result.errors)

        merged["updated_at"] = utcnow().isoformat()
        rule = Rule.from_dict(merged)
        self._records.replace(rule.to_dict())
        logger.info("Updated rule %s", rule_id)
        return rule

    def delete_rule(self, rule_id: str) -> None:
        if not self._records.delete(rule_id):
            raise NotFound("Rule", rule_id)
        logger.info("Deleted rule %s", rule_id)

    def toggle_rule(self, rule_id: str, is_active: Optional[bool] = None) -> Rule:
        """Set ``is_active``, or flip it when no value is given."""
        rule = self.get_rule(rule_id)
        target = (not rule.is_active) if is_active is None else is_active
        return self.update_rule(rule_id, {"is_active": target})

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def bulk_toggle(self, rule_ids: Iterable[str], is_active: bool) -> list[Rule]:
        """Activate or deactivate several rules. Unknown ids raise ``NotFound``."""
        ids = list(rule_ids)
        for rule_id in ids:
            self.get_rule(rule_id)
        return [self.update_rule(rule_id, {"is_active": is_active}) for rule_id in ids]

    def bulk_update_priorities(self, priorities: dict[str, int]) -> list[Rule]:
        """Assign new priorities, given as ``{rule_id: priority}``."""
        for rule_id in priorities:
            self.get_rule(rule_id)
        return [
            self.update_rule(rule_id, {"priority": int(priority)})
            for rule_id, priority in priorities.items()
        ]
