"""Tests for rule evaluation: conditions, exclusions, cooldowns and ordering."""

import tempfile
from datetime import datetime, timedelta, timezone

from automod.audit.recorder import AuditRecorder, ModerationActionRecord, OutcomeStatus
from automod.auth.models import Role
from automod.collaborators import InMemoryIdentityStore
from automod.rules.evaluator import RuleEvaluator, evaluate, evaluate_condition, lexicon_sentiment
from automod.rules.models import (
    ActionType,
    ConditionType,
    ContentAuthor,
    ContentItem,
    ImageLabelCondition,
    LinkDomainCondition,
    Operator,
    Rule,
    RuleSchedule,
    TargetType,
    ThresholdCondition,
    TimeWindowCondition,
    TriggerType,
    condition_from_dict,
)
from automod.rules.validator import parse_rule

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)  # a Wednesday


def _rule(name="Spam", priority=5, conditions=None, actions=None, **extra) -> Rule:
    draft = {
        "name": name,
        "priority": priority,
        "trigger_type": "KEYWORD_MATCH",
        "target_types": ["POST", "COMMENT"],
        "conditions": conditions
        or [{"type": "KEYWORD", "operator": "CONTAINS", "value": "spam"}],
        "actions": actions or [{"type": "FLAG"}],
    }
    draft.update(extra)
    return parse_rule(draft)


def _item(text="buy cheap spam now", author="u1", target_type=TargetType.POST, **extra) -> ContentItem:
    author_fields = extra.pop("author_fields", {})
    return ContentItem(
        id="post-1",
        target_type=target_type,
        author=ContentAuthor(id=author, **author_fields),
        text=text,
        **extra,
    )


def _record_at(rule: Rule, when: datetime, target_id="post-1") -> ModerationActionRecord:
    return ModerationActionRecord(
        rule_id=rule.id,
        rule_name=rule.name,
        target_type="POST",
        target_id=target_id,
        action_types=("FLAG",),
        status=OutcomeStatus.COMPLETED,
        timestamp=when.isoformat(),
    )


# --- Matching ---


def test_keyword_rule_matches_spam():
    matches = evaluate(_item(), [_rule()], now=NOW)
    assert len(matches) == 1
    assert matches[0].action_types == [ActionType.FLAG]
    assert matches[0].author_id == "u1"


def test_keyword_rule_ignores_clean_text():
    assert evaluate(_item(text="hello world"), [_rule()], now=NOW) == []


def test_all_conditions_must_hold():
    rule = _rule(
        conditions=[
            {"type": "KEYWORD", "operator": "CONTAINS", "value": "spam"},
            {"type": "LENGTH", "operator": "GREATER_THAN", "value": 100},
        ]
    )
    assert evaluate(_item(), [rule], now=NOW) == []
    assert len(evaluate(_item(text="spam " * 30), [rule], now=NOW)) == 1


def test_inactive_rule_and_wrong_target_type_skipped():
    inactive = _rule(is_active=False)
    wrong_type = _rule(target_types=["USER"])
    assert evaluate(_item(), [inactive, wrong_type], now=NOW) == []


def test_trigger_type_filter():
    rule = _rule()
    assert evaluate(_item(), [rule], now=NOW, trigger_types=[TriggerType.SPAM_DETECTION]) == []
    assert len(evaluate(_item(), [rule], now=NOW, trigger_types=[TriggerType.KEYWORD_MATCH])) == 1


def test_results_ordered_by_priority_then_creation():
    low = _rule(name="low", priority=5, created_at="2024-01-01T00:00:00+00:00")
    high = _rule(name="high", priority=10, created_at="2024-02-01T00:00:00+00:00")
    older_low = _rule(name="older-low", priority=5, created_at="2023-01-01T00:00:00+00:00")
    matches = evaluate(_item(), [low, high, older_low], now=NOW)
    assert [m.rule.name for m in matches] == ["high", "older-low", "low"]


# --- Exclusions ---


def test_whitelisted_author_skipped():
    assert evaluate(_item(author="trusted"), [_rule(whitelist_users=["trusted"])], now=NOW) == []


def test_exempt_role_skipped():
    identity = InMemoryIdentityStore(roles={"mod1": {Role.moderator}})
    evaluator = RuleEvaluator(identity=identity)
    rule = _rule(exempt_roles=["moderator"])
    assert evaluator.evaluate(_item(author="mod1"), [rule], now=NOW) == []
    assert len(evaluator.evaluate(_item(author="u2"), [rule], now=NOW)) == 1


def test_exempt_roles_match_regardless_of_case():
    identity = InMemoryIdentityStore(roles={"mod1": {Role.moderator}})
    evaluator = RuleEvaluator(identity=identity)
    rule = _rule(exempt_roles=["MODERATOR"])
    assert rule.exempt_roles == ["moderator"]
    assert evaluator.evaluate(_item(author="mod1"), [rule], now=NOW) == []


def test_blacklisted_author_never_exempt():
    identity = InMemoryIdentityStore(roles={"bad": {Role.moderator}})
    evaluator = RuleEvaluator(identity=identity)
    rule = _rule(whitelist_users=["bad"], blacklist_users=["bad"], exempt_roles=["moderator"])
    assert len(evaluator.evaluate(_item(author="bad"), [rule], now=NOW)) == 1


def test_cooldown_skips_matching_rule():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        rule = _rule(cooldown_period=3600)
        recorder.record(_record_at(rule, NOW - timedelta(minutes=10)))

        evaluator = RuleEvaluator(history=recorder)
        assert evaluator.evaluate(_item(), [rule], now=NOW) == []
        # Outside the cooldown window it matches again
        assert len(evaluator.evaluate(_item(), [rule], now=NOW + timedelta(hours=2))) == 1
        # And skip_cooldown bypasses it entirely
        assert len(evaluator.evaluate(_item(), [rule], now=NOW, skip_cooldown=True)) == 1


def test_cooldown_is_per_target():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        rule = _rule(cooldown_period=3600)
        recorder.record(_record_at(rule, NOW - timedelta(minutes=10), target_id="post-2"))
        assert len(RuleEvaluator(history=recorder).evaluate(_item(), [rule], now=NOW)) == 1


def test_hourly_ceiling():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        rule = _rule(max_triggers_per_hour=2)
        for minutes in (5, 20):
            recorder.record(_record_at(rule, NOW - timedelta(minutes=minutes), target_id=f"t{minutes}"))
        assert RuleEvaluator(history=recorder).evaluate(_item(), [rule], now=NOW) == []


def test_schedule_restricts_hours_and_days():
    office_hours = RuleSchedule(enabled=True, start_time="09:00", end_time="17:00", days_of_week=[3])
    rule = _rule()
    rule.schedule = office_hours
    assert len(evaluate(_item(), [rule], now=NOW)) == 1
    assert evaluate(_item(), [rule], now=NOW.replace(hour=20)) == []
    assert evaluate(_item(), [rule], now=NOW + timedelta(days=1)) == []


# --- Individual conditions ---


def test_keyword_operators():
    item = _item(text="Hello Spammer")
    cases = [
        ({"operator": "CONTAINS", "value": "spam"}, True),
        ({"operator": "CONTAINS", "value": "spam", "whole_word": True}, False),
        ({"operator": "CONTAINS", "value": "spam", "case_sensitive": True}, False),
        ({"operator": "NOT_CONTAINS", "value": "eggs"}, True),
        ({"operator": "STARTS_WITH", "value": "hello"}, True),
        ({"operator": "ENDS_WITH", "value": "spammer"}, True),
        ({"operator": "EQUALS", "value": "hello spammer"}, True),
    ]
    for fields, expected in cases:
        condition = condition_from_dict({"type": "KEYWORD", **fields})
        assert evaluate_condition(condition, item, NOW).matched is expected, fields


def test_regex_condition():
    condition = condition_from_dict({"type": "REGEX", "pattern": r"\bfree\s+money\b"})
    assert evaluate_condition(condition, _item(text="Get FREE   money"), NOW).matched


def test_caps_and_links_metrics():
    caps = ThresholdCondition(metric=ConditionType.CAPS, value=50)
    assert evaluate_condition(caps, _item(text="STOP SHOUTING"), NOW).matched
    assert not evaluate_condition(caps, _item(text="calm words"), NOW).matched

    links = ThresholdCondition(metric=ConditionType.LINKS, value=1)
    text = "see http://a.example and https://b.example"
    assert evaluate_condition(links, _item(text=text), NOW).matched


def test_author_metrics():
    young = ThresholdCondition(metric=ConditionType.USER_AGE, value=7, operator=Operator.LESS_THAN)
    item = _item(author_fields={"account_age_days": 2, "karma": 50})
    assert evaluate_condition(young, item, NOW).matched

    karma = ThresholdCondition(metric=ConditionType.USER_KARMA, value=10, operator=Operator.LESS_THAN)
    assert not evaluate_condition(karma, item, NOW).matched


def test_link_domain_matches_subdomains():
    condition = LinkDomainCondition(domains=["spam.example"])
    item = _item(text="visit https://promo.spam.example/deal", links=["https://ok.example"])
    assert evaluate_condition(condition, item, NOW).matched
    assert not evaluate_condition(condition, _item(text="https://notspam.example"), NOW).matched


def test_image_label_confidence():
    condition = ImageLabelCondition(labels=["nudity"], min_confidence=0.8)
    assert evaluate_condition(condition, _item(image_labels={"nudity": 0.9}), NOW).matched
    assert not evaluate_condition(condition, _item(image_labels={"nudity": 0.4}), NOW).matched


def test_sentiment_prefers_supplied_score():
    condition = condition_from_dict({"type": "SENTIMENT", "operator": "LESS_THAN", "value": -0.5})
    assert evaluate_condition(condition, _item(text="lovely", sentiment=-0.9), NOW).matched
    assert lexicon_sentiment("i hate this awful thing") < 0


def test_time_window_condition():
    condition = TimeWindowCondition(start_hour=22, end_hour=23)
    assert not evaluate_condition(condition, _item(), NOW).matched
    assert evaluate_condition(condition, _item(), NOW.replace(hour=22)).matched


def test_test_rule_ignores_exclusions():
    rule = _rule(whitelist_users=["u1"])
    result = RuleEvaluator().test_rule(rule, _item(), now=NOW)
    assert result.matched
    assert result.recommended_actions == ["FLAG"]
    assert result.triggered_conditions == ['KEYWORD: Contains "spam"']
