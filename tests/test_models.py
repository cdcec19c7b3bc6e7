"""Tests for rule, condition and action models."""

from datetime import datetime, timezone

from automod.rules.models import (
    ActionType,
    BanAction,
    ConditionType,
    EscalateAction,
    EscalationLevel,
    LinkDomainCondition,
    NotifyModeratorsAction,
    Operator,
    Rule,
    RuleSchedule,
    TargetType,
    ThresholdCondition,
    TimeWindowCondition,
    TriggerType,
    action_from_dict,
    action_to_dict,
    condition_from_dict,
    condition_to_dict,
    evaluation_order,
)


def test_metric_conditions_share_threshold_class():
    condition = condition_from_dict({"type": "CAPS", "operator": "GREATER_THAN", "value": "70"})
    assert isinstance(condition, ThresholdCondition)
    assert condition.type == ConditionType.CAPS
    assert condition.value == 70.0
    assert condition_to_dict(condition) == {"type": "CAPS", "value": 70.0, "operator": "GREATER_THAN"}


def test_list_conditions_accept_value_fallback():
    condition = condition_from_dict({"type": "LINK_DOMAIN", "value": "spam.example"})
    assert condition == LinkDomainCondition(domains=["spam.example"])


def test_time_window_shorthand():
    assert condition_from_dict({"type": "TIME_WINDOW", "value": "9-17"}) == TimeWindowCondition(9, 17)


def test_action_parameters_nested_or_flat():
    nested = action_from_dict({"type": "BAN", "parameters": {"duration": 1440, "reason": "abuse"}})
    flat = action_from_dict({"type": "BAN", "duration": 1440, "reason": "abuse", "unknown": 1})
    assert nested == flat == BanAction(duration=1440, reason="abuse")


def test_action_defaults():
    escalate = action_from_dict({"type": "ESCALATE"})
    assert isinstance(escalate, EscalateAction)
    assert escalate.level == EscalationLevel.MEDIUM
    assert escalate.require_manual_review

    notify = action_from_dict({"type": "NOTIFY_MODERATORS", "moderator_ids": "m1"})
    assert notify == NotifyModeratorsAction(moderator_ids=["m1"])
    assert action_to_dict(notify)["type"] == ActionType.NOTIFY_MODERATORS.value


def test_rule_dict_round_trip_keeps_identity():
    rule = Rule(
        name="Links",
        trigger_type=TriggerType.LINK_ANALYSIS,
        target_types=[TargetType.POST],
        conditions=[ThresholdCondition(metric=ConditionType.LINKS, value=3)],
        actions=[BanAction()],
        cooldown_period=60,
        schedule=RuleSchedule(enabled=True, start_time="08:00", end_time="18:00"),
    )
    restored = Rule.from_dict(rule.to_dict())
    assert restored == rule
    assert restored.conditions[0].operator == Operator.GREATER_THAN


def test_schedule_days_are_sunday_based():
    sunday_only = RuleSchedule(enabled=True, days_of_week=[0])
    assert sunday_only.admits(datetime(2024, 3, 3, 10, tzinfo=timezone.utc))  # Sunday
    assert not sunday_only.admits(datetime(2024, 3, 4, 10, tzinfo=timezone.utc))  # Monday
    assert RuleSchedule(enabled=False, days_of_week=[0]).admits(datetime(2024, 3, 4, tzinfo=timezone.utc))


def test_evaluation_order_tie_breaks_on_creation():
    def make(name, priority, created_at):
        return Rule(
            name=name,
            trigger_type=TriggerType.CONTENT_FILTER,
            target_types=[TargetType.POST],
            conditions=[],
            actions=[],
            priority=priority,
            created_at=created_at,
        )

    rules = [
        make("newer", 5, "2024-02-01T00:00:00"),
        make("top", 10, "2024-03-01T00:00:00"),
        make("older", 5, "2024-01-01T00:00:00+00:00"),
    ]
    assert [r.name for r in evaluation_order(rules)] == ["top", "older", "newer"]
