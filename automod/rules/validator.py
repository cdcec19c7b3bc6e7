"""Structural validation for auto-moderation rule drafts.

Every check runs; errors are collected and returned together so a caller can
show the whole list at once. An empty error list means the draft is valid.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from automod.auth.models import Role
from automod.exceptions import ValidationError
from automod.rules.models import (
    METRIC_TYPES,
    NUMERIC_OPERATORS,
    TEXT_OPERATORS,
    ActionType,
    ConditionType,
    RegexCondition,
    Rule,
    TargetType,
    TriggerType,
    action_from_dict,
    condition_from_dict,
)

_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

VALID_TRIGGER_TYPES = {t.value for t in TriggerType}
VALID_TARGET_TYPES = {t.value for t in TargetType}
VALID_CONDITION_TYPES = {t.value for t in ConditionType}
VALID_ACTION_TYPES = {t.value for t in ActionType}
VALID_ROLES = {r.value for r in Role}


@dataclass
class RuleValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_rule(draft: dict[str, Any]) -> RuleValidationResult:
    """Validate a rule draft dict. Pure; never raises."""
    result = RuleValidationResult()
    if not isinstance(draft, dict):
        result.errors.append("Rule must be an object")
        return result

    if not str(draft.get("name") or "").strip():
        result.errors.append("Name is required")

    trigger_type = draft.get("trigger_type")
    if not _is_one_of(trigger_type, VALID_TRIGGER_TYPES):
        result.errors.append(f"Invalid trigger type: {trigger_type}")

    _check_target_types(draft.get("target_types"), result)
    _check_conditions(draft.get("conditions"), result)
    _check_actions(draft.get("actions"), result)
    _check_schedule(draft.get("schedule"), result)
    _check_exempt_roles(draft.get("exempt_roles"), result)
    _check_limits(draft, result)

    return result


def parse_rule(draft: dict[str, Any]) -> Rule:
    """Validate *draft* and build a ``Rule``; raise ``ValidationError`` otherwise."""
    result = validate_rule(draft)
    if not result.is_valid:
        raise ValidationError(result.errors)
    return Rule.from_dict(draft)


def _check_target_types(target_types: Any, result: RuleValidationResult) -> None:
    if not isinstance(target_types, list) or not target_types:
        result.errors.append("Target types must be a non-empty array")
        return
    for t in target_types:
        if not _is_one_of(t, VALID_TARGET_TYPES):
            result.errors.append(f"Invalid target type: {t}")


def _check_conditions(conditions: Any, result: RuleValidationResult) -> None:
    if not isinstance(conditions, list) or not conditions:
        result.errors.append("Conditions must be a non-empty array")
        return

    for i, raw in enumerate(conditions, start=1):
        if not isinstance(raw, dict) or not _is_one_of(raw.get("type"), VALID_CONDITION_TYPES):
            kind = raw.get("type") if isinstance(raw, dict) else raw
            result.errors.append(f"Condition {i}: unknown type '{kind}'")
            continue
        try:
            condition = condition_from_dict(raw)
        except (KeyError, ValueError, TypeError) as exc:
            result.errors.append(f"Condition {i}: type, operator, and value are required ({exc})")
            continue

        operator = getattr(condition, "operator", None)
        if condition.type == ConditionType.KEYWORD and operator not in TEXT_OPERATORS:
            result.errors.append(f"Condition {i}: operator {operator.value} is not valid for text")
        if (condition.type in METRIC_TYPES or condition.type == ConditionType.SENTIMENT) and (
            operator not in NUMERIC_OPERATORS
        ):
            result.errors.append(f"Condition {i}: operator {operator.value} is not valid for numbers")
        if isinstance(condition, RegexCondition):
            try:
                re.compile(condition.pattern)
            except re.error as exc:
                result.errors.append(f"Condition {i}: invalid regular expression ({exc})")
        if condition.type in (
            ConditionType.LINK_DOMAIN,
            ConditionType.IMAGE_LABEL,
            ConditionType.LANGUAGE,
        ) and not _first_list(condition):
            result.errors.append(f"Condition {i}: at least one value is required")
        if condition.type == ConditionType.TIME_WINDOW and not (
            0 <= condition.start_hour <= 23 and 0 <= condition.end_hour <= 23
        ):
            result.errors.append(f"Condition {i}: hours must be between 0 and 23")


def _is_one_of(value: Any, allowed: set[str]) -> bool:
    return isinstance(value, str) and value in allowed


def _first_list(condition: Any) -> list:
    for attr in ("domains", "labels", "languages"):
        if hasattr(condition, attr):
            return getattr(condition, attr)
    return []


def _check_actions(actions: Any, result: RuleValidationResult) -> None:
    if not isinstance(actions, list) or not actions:
        result.errors.append("Actions must be a non-empty array")
        return

    for i, raw in enumerate(actions, start=1):
        if not isinstance(raw, dict) or not raw.get("type"):
            result.errors.append(f"Action {i}: type is required")
            continue
        if not _is_one_of(raw["type"], VALID_ACTION_TYPES):
            result.errors.append(f"Action {i}: unknown type '{raw['type']}'")
            continue
        try:
            action_from_dict(raw)
        except (ValueError, TypeError) as exc:
            result.errors.append(f"Action {i}: invalid parameters ({exc})")


def _check_schedule(schedule: Any, result: RuleValidationResult) -> None:
    if not schedule:
        return
    if not isinstance(schedule, dict):
        result.errors.append("Schedule must be an object")
        return
    if not schedule.get("enabled"):
        return
    # YAML reads an unquoted 9:00 as the sexagesimal int 540
    for key, label in (("start_time", "start"), ("end_time", "end")):
        value = schedule.get(key)
        if value in (None, ""):
            continue
        if not isinstance(value, str) or not _TIME_RE.match(value):
            result.errors.append(f"Invalid {label} time format (use HH:MM)")
    days = schedule.get("days_of_week") or []
    if not isinstance(days, list):
        result.errors.append("Days of week must be an array")
        return
    for day in days:
        if not isinstance(day, int) or not 0 <= day <= 6:
            result.errors.append(f"Invalid day of week: {day} (use 0-6, Sunday=0)")


def _check_exempt_roles(roles: Any, result: RuleValidationResult) -> None:
    if roles is None:
        return
    if not isinstance(roles, list):
        result.errors.append("Exempt roles must be an array")
        return
    for role in roles:
        if not isinstance(role, str) or role.lower() not in VALID_ROLES:
            result.errors.append(f"Invalid exempt role: {role}")


def _check_limits(draft: dict[str, Any], result: RuleValidationResult) -> None:
    for key, label in (
        ("cooldown_period", "Cooldown period"),
        ("max_triggers_per_hour", "Max triggers per hour"),
    ):
        value = draft.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            result.errors.append(f"{label} must be a non-negative integer")
    priority = draft.get("priority")
    if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
        result.errors.append("Priority must be an integer")
