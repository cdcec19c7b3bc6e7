"""Rule evaluation — decide which rules match a content item.

Evaluation is read-only: it consults the identity store for exempt roles and
the trigger history for cooldowns and hourly ceilings, but never acts. The
matches it returns are handed to ``ActionExecutor``.

A rule matches when it is active, applies to the item's type, is inside its
schedule, does not exempt the author, is outside its cooldown for this
target, is under its hourly ceiling, and every one of its conditions holds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol
from urllib.parse import urlparse

from automod.collaborators import IdentityStore
from automod.rules.models import (
    Condition,
    ConditionResult,
    ConditionType,
    ContentItem,
    ImageLabelCondition,
    KeywordCondition,
    LanguageCondition,
    LinkDomainCondition,
    MatchResult,
    Operator,
    RegexCondition,
    Rule,
    SentimentCondition,
    ThresholdCondition,
    TimeWindowCondition,
    TriggerType,
    evaluation_order,
    utcnow,
)

logger = logging.getLogger(__name__)

_LINK_RE = re.compile(r"https?://[^\s]+")
_REPEAT_RE = re.compile(r"(.)\1{3,}|(\b\w+\b).*\b\2\b.*\b\2\b", re.IGNORECASE)

_NEGATIVE_WORDS = ("hate", "terrible", "awful", "bad", "worst")
_POSITIVE_WORDS = ("love", "great", "awesome", "good", "best")


class TriggerHistory(Protocol):
    """Past triggers, as kept by ``AuditRecorder``."""

    def last_triggered(
        self, rule_id: str, target_id: str, since: Optional[datetime] = None
    ) -> Optional[datetime]:
        ...

    def trigger_count(self, rule_id: str, since: datetime, until: Optional[datetime] = None) -> int:
        ...


@dataclass
class RuleTestResult:
    """Dry-run outcome of one rule against one item, ignoring exclusions."""

    rule_id: str
    matched: bool
    conditions: list[ConditionResult] = field(default_factory=list)
    recommended_actions: list[str] = field(default_factory=list)

    @property
    def triggered_conditions(self) -> list[str]:
        return [f"{c.type.value}: {c.reason}" for c in self.conditions if c.matched]


class RuleEvaluator:
    """Matches content items against rule sets."""

    def __init__(
        self,
        identity: Optional[IdentityStore] = None,
        history: Optional[TriggerHistory] = None,
    ) -> None:
        self._identity = identity
        self._history = history

    def evaluate(
        self,
        item: ContentItem,
        rules: Iterable[Rule],
        *,
        now: Optional[datetime] = None,
        trigger_types: Optional[Iterable[TriggerType]] = None,
        skip_cooldown: bool = False,
    ) -> list[MatchResult]:
        """Return the matching rules, highest priority first."""
        now = now or utcnow()
        wanted = set(trigger_types) if trigger_types else None
        author_roles: Optional[set[str]] = None
        matches: list[MatchResult] = []

        for rule in evaluation_order(list(rules)):
            if not rule.is_active or not rule.applies_to(item.target_type):
                continue
            if wanted is not None and rule.trigger_type not in wanted:
                continue
            if rule.schedule and not rule.schedule.admits(now):
                logger.debug("Rule %s outside its schedule", rule.id)
                continue

            if rule.exempt_roles and author_roles is None:
                author_roles = self._author_roles(item)
            reason = self._exclusion(rule, item, author_roles or set(), now, skip_cooldown)
            if reason:
                logger.debug("Rule %s skipped for %s: %s", rule.id, item.id, reason)
                continue

            results = [evaluate_condition(c, item, now) for c in rule.conditions]
            if all(r.matched for r in results):
                logger.info("Rule %s (%s) matched %s %s", rule.id, rule.name, item.target_type.value, item.id)
                matches.append(
                    MatchResult(
                        rule=rule,
                        target_id=item.id,
                        target_type=item.target_type,
                        author_id=item.author.id,
                        conditions=results,
                    )
                )

        return matches

    def test_rule(self, rule: Rule, item: ContentItem, now: Optional[datetime] = None) -> RuleTestResult:
        """Evaluate only *rule*'s conditions against *item*."""
        now = now or utcnow()
        results = [evaluate_condition(c, item, now) for c in rule.conditions]
        matched = all(r.matched for r in results)
        return RuleTestResult(
            rule_id=rule.id,
            matched=matched,
            conditions=results,
            recommended_actions=[a.type.value for a in rule.actions] if matched else [],
        )

    # ------------------------------------------------------------------
    # Exclusions
    # ------------------------------------------------------------------

    def _author_roles(self, item: ContentItem) -> set[str]:
        if self._identity is None or not item.author.id:
            return set()
        return {r.value for r in self._identity.get_user_roles(item.author.id)}

    def _exclusion(
        self,
        rule: Rule,
        item: ContentItem,
        author_roles: set[str],
        now: datetime,
        skip_cooldown: bool,
    ) -> Optional[str]:
        author_id = item.author.id
        blacklisted = author_id in rule.blacklist_users
        if not blacklisted:
            if author_id in rule.whitelist_users:
                return "author is whitelisted"
            exempt = author_roles.intersection(rule.exempt_roles)
            if exempt:
                return f"author has exempt role {sorted(exempt)[0]}"

        if self._history is None:
            return None

        if rule.cooldown_period and not skip_cooldown:
            since = now - timedelta(seconds=rule.cooldown_period)
            last = self._history.last_triggered(rule.id, item.id, since=since)
            if last is not None and (now - last).total_seconds() < rule.cooldown_period:
                return "in cooldown"

        if rule.max_triggers_per_hour:
            recent = self._history.trigger_count(rule.id, now - timedelta(hours=1), now)
            if recent >= rule.max_triggers_per_hour:
                return f"hourly ceiling reached ({recent}/{rule.max_triggers_per_hour})"

        return None


def evaluate(item: ContentItem, rules: Iterable[Rule], **kwargs) -> list[MatchResult]:
    """Evaluate without identity or history collaborators."""
    return RuleEvaluator().evaluate(item, rules, **kwargs)


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


def evaluate_condition(condition: Condition, item: ContentItem, now: datetime) -> ConditionResult:
    """Evaluate a single condition against *item*."""
    if isinstance(condition, KeywordCondition):
        return _keyword(condition, _text(item))

    if isinstance(condition, RegexCondition):
        flags = 0 if condition.case_sensitive else re.IGNORECASE
        try:
            matched = re.search(condition.pattern, _text(item), flags) is not None
        except re.error:
            return ConditionResult(condition.type, False, f"Invalid regex pattern: {condition.pattern}")
        verb = "Matches" if matched else "Does not match"
        return ConditionResult(condition.type, matched, f'{verb} pattern "{condition.pattern}"')

    if isinstance(condition, ThresholdCondition):
        measured = content_metric(condition.metric, item)
        return _compare(condition.type, measured, condition.operator, condition.value)

    if isinstance(condition, SentimentCondition):
        score = item.sentiment if item.sentiment is not None else lexicon_sentiment(_text(item))
        return _compare(condition.type, score, condition.operator, condition.value)

    if isinstance(condition, LinkDomainCondition):
        wanted = [d.lower().lstrip(".") for d in condition.domains]
        hits = [
            host
            for host in (_host(link) for link in all_links(item))
            if host and any(host == d or host.endswith("." + d) for d in wanted)
        ]
        reason = f"Links to {hits[0]}" if hits else "No blocked link destinations"
        return ConditionResult(condition.type, bool(hits), reason)

    if isinstance(condition, ImageLabelCondition):
        hits = [
            label
            for label in condition.labels
            if item.image_labels.get(label, 0.0) >= condition.min_confidence
        ]
        reason = f"Image labelled {hits[0]}" if hits else "No listed image labels"
        return ConditionResult(condition.type, bool(hits), reason)

    if isinstance(condition, LanguageCondition):
        matched = item.language.lower() in {lang.lower() for lang in condition.languages}
        return ConditionResult(condition.type, matched, f"Language is '{item.language or 'unknown'}'")

    if isinstance(condition, TimeWindowCondition):
        matched = condition.start_hour <= now.hour <= condition.end_hour
        return ConditionResult(
            condition.type,
            matched,
            f"Hour {now.hour} {'inside' if matched else 'outside'} {condition.start_hour}-{condition.end_hour}",
        )

    raise TypeError(f"Unsupported condition: {condition!r}")


def _text(item: ContentItem) -> str:
    return item.text or item.title or ""


def _keyword(condition: KeywordCondition, text: str) -> ConditionResult:
    value = condition.value
    if not condition.case_sensitive:
        text = text.lower()
        value = value.lower()

    op = condition.operator
    if op == Operator.CONTAINS:
        if condition.whole_word:
            matched = re.search(rf"\b{re.escape(value)}\b", text) is not None
        else:
            matched = value in text
        reason = f'Contains "{value}"' if matched else f'Does not contain "{value}"'
    elif op == Operator.NOT_CONTAINS:
        matched = value not in text
        reason = f'Does not contain "{value}"' if matched else f'Contains "{value}"'
    elif op == Operator.STARTS_WITH:
        matched = text.startswith(value)
        reason = f'{"Starts" if matched else "Does not start"} with "{value}"'
    elif op == Operator.ENDS_WITH:
        matched = text.endswith(value)
        reason = f'{"Ends" if matched else "Does not end"} with "{value}"'
    elif op == Operator.EQUALS:
        matched = text == value
        reason = f"Value {'equals' if matched else 'does not equal'} {value}"
    else:
        matched = False
        reason = f"Unknown operator: {op.value}"
    return ConditionResult(condition.type, matched, reason)


def _compare(ctype: ConditionType, measured: float, op: Operator, threshold: float) -> ConditionResult:
    if op == Operator.GREATER_THAN:
        matched = measured > threshold
        reason = f"{measured:g} {'>' if matched else '<='} {threshold:g}"
    elif op == Operator.LESS_THAN:
        matched = measured < threshold
        reason = f"{measured:g} {'<' if matched else '>='} {threshold:g}"
    elif op == Operator.EQUALS:
        matched = measured == threshold
        reason = f"{measured:g} {'==' if matched else '!='} {threshold:g}"
    else:
        matched = False
        reason = f"Unknown operator: {op.value}"
    return ConditionResult(ctype, matched, reason)


def all_links(item: ContentItem) -> list[str]:
    """Links attached to the item plus any URLs found in its text."""
    links = list(item.links)
    for url in _LINK_RE.findall(_text(item)):
        if url not in links:
            links.append(url)
    return links


def _host(link: str) -> str:
    try:
        return (urlparse(link).hostname or "").lower()
    except ValueError:
        return ""


def content_metric(metric: ConditionType, item: ContentItem) -> float:
    """Numeric measure of *item* named by a threshold condition's metric."""
    text = _text(item)
    if metric == ConditionType.LENGTH:
        return float(len(text))
    if metric == ConditionType.LINKS:
        return float(len(all_links(item)))
    if metric == ConditionType.CAPS:
        if not text:
            return 0.0
        return sum(1 for ch in text if "A" <= ch <= "Z") / len(text) * 100
    if metric == ConditionType.REPETITION:
        return float(sum(1 for _ in _REPEAT_RE.finditer(text)))
    if metric == ConditionType.USER_AGE:
        return float(item.author.account_age_days)
    if metric == ConditionType.USER_KARMA:
        return float(item.author.karma)
    if metric == ConditionType.POST_RATE:
        return float(item.author.recent_post_count)
    raise ValueError(f"Not a metric condition: {metric.value}")


def lexicon_sentiment(text: str) -> float:
    """Crude word-list sentiment in [-1, 1], used when no score is supplied."""
    words = text.lower().split()
    if not words:
        return 0.0
    score = 0
    for word in words:
        if any(neg in word for neg in _NEGATIVE_WORDS):
            score -= 1
        if any(pos in word for pos in _POSITIVE_WORDS):
            score += 1
    return max(-1.0, min(1.0, score / max(len(words) / 10, 1)))
