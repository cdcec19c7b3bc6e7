"""Auto-moderation rule definitions.

A rule pairs an ordered list of conditions with an ordered list of actions.
Conditions and actions are tagged variants: each kind is its own dataclass
holding only the fields it needs, and the ``type`` tag picks the class when
a stored dict is parsed back.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TriggerType(str, Enum):
    """The family a rule belongs to. Used for filtering and reporting."""

    CONTENT_FILTER = "CONTENT_FILTER"
    SPAM_DETECTION = "SPAM_DETECTION"
    USER_BEHAVIOR = "USER_BEHAVIOR"
    RATE_LIMIT = "RATE_LIMIT"
    KEYWORD_MATCH = "KEYWORD_MATCH"
    SENTIMENT_ANALYSIS = "SENTIMENT_ANALYSIS"
    LINK_ANALYSIS = "LINK_ANALYSIS"
    IMAGE_ANALYSIS = "IMAGE_ANALYSIS"


class TargetType(str, Enum):
    """Kinds of content a rule can apply to."""

    POST = "POST"
    COMMENT = "COMMENT"
    USER = "USER"
    FORUM_POST = "FORUM_POST"
    FEATURE_REQUEST = "FEATURE_REQUEST"


class ConditionType(str, Enum):
    KEYWORD = "KEYWORD"
    REGEX = "REGEX"
    LENGTH = "LENGTH"
    LINKS = "LINKS"
    CAPS = "CAPS"
    REPETITION = "REPETITION"
    USER_AGE = "USER_AGE"
    USER_KARMA = "USER_KARMA"
    POST_RATE = "POST_RATE"
    SENTIMENT = "SENTIMENT"
    LINK_DOMAIN = "LINK_DOMAIN"
    IMAGE_LABEL = "IMAGE_LABEL"
    LANGUAGE = "LANGUAGE"
    TIME_WINDOW = "TIME_WINDOW"


# Condition types that compare a numeric content metric against a threshold
METRIC_TYPES = frozenset(
    {
        ConditionType.LENGTH,
        ConditionType.LINKS,
        ConditionType.CAPS,
        ConditionType.REPETITION,
        ConditionType.USER_AGE,
        ConditionType.USER_KARMA,
        ConditionType.POST_RATE,
    }
)


class Operator(str, Enum):
    EQUALS = "EQUALS"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"


TEXT_OPERATORS = frozenset(
    {
        Operator.EQUALS,
        Operator.CONTAINS,
        Operator.NOT_CONTAINS,
        Operator.STARTS_WITH,
        Operator.ENDS_WITH,
    }
)
NUMERIC_OPERATORS = frozenset({Operator.EQUALS, Operator.GREATER_THAN, Operator.LESS_THAN})


class ActionType(str, Enum):
    DELETE = "DELETE"
    FLAG = "FLAG"
    WARN = "WARN"
    SUSPEND = "SUSPEND"
    BAN = "BAN"
    QUARANTINE = "QUARANTINE"
    NOTIFY_MODERATORS = "NOTIFY_MODERATORS"
    ESCALATE = "ESCALATE"
    LOG_ONLY = "LOG_ONLY"


class EscalationLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


@dataclass
class KeywordCondition:
    """String test against the item's text (title when there is no text)."""

    value: str
    operator: Operator = Operator.CONTAINS
    case_sensitive: bool = False
    whole_word: bool = False

    type: ClassVar[ConditionType] = ConditionType.KEYWORD


@dataclass
class RegexCondition:
    """Regular-expression search over the item's text."""

    pattern: str
    case_sensitive: bool = False

    type: ClassVar[ConditionType] = ConditionType.REGEX


@dataclass
class ThresholdCondition:
    """Numeric comparison of one content metric (length, caps %, karma...)."""

    metric: ConditionType
    value: float
    operator: Operator = Operator.GREATER_THAN

    @property
    def type(self) -> ConditionType:
        return self.metric


@dataclass
class SentimentCondition:
    """Compare the item's sentiment score (-1..1) against a threshold."""

    value: float
    operator: Operator = Operator.LESS_THAN

    type: ClassVar[ConditionType] = ConditionType.SENTIMENT


@dataclass
class LinkDomainCondition:
    """Match when any link points at one of *domains* or a subdomain of it."""

    domains: list[str] = field(default_factory=list)

    type: ClassVar[ConditionType] = ConditionType.LINK_DOMAIN


@dataclass
class ImageLabelCondition:
    """Match when the image classifier reported a listed label confidently enough."""

    labels: list[str] = field(default_factory=list)
    min_confidence: float = 0.5

    type: ClassVar[ConditionType] = ConditionType.IMAGE_LABEL


@dataclass
class LanguageCondition:
    languages: list[str] = field(default_factory=list)

    type: ClassVar[ConditionType] = ConditionType.LANGUAGE


@dataclass
class TimeWindowCondition:
    """Match when the evaluation hour lies in ``[start_hour, end_hour]``."""

    start_hour: int
    end_hour: int

    type: ClassVar[ConditionType] = ConditionType.TIME_WINDOW


Condition = Union[
    KeywordCondition,
    RegexCondition,
    ThresholdCondition,
    SentimentCondition,
    LinkDomainCondition,
    ImageLabelCondition,
    LanguageCondition,
    TimeWindowCondition,
]


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _required(data: dict[str, Any], *keys: str) -> Any:
    """First non-null value among *keys*; ``KeyError`` when all are missing or null."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    raise KeyError(keys[0])


def condition_from_dict(data: dict[str, Any]) -> Condition:
    """Build a condition from its stored dict.

    Raises ``KeyError`` or ``ValueError`` when a required field is missing or
    malformed; ``validate_rule`` reports those as validation errors.
    """
    ctype = ConditionType(data["type"])

    if ctype == ConditionType.KEYWORD:
        return KeywordCondition(
            value=str(_required(data, "value")),
            operator=Operator(data.get("operator", Operator.CONTAINS.value)),
            case_sensitive=bool(data.get("case_sensitive", False)),
            whole_word=bool(data.get("whole_word", False)),
        )

    if ctype == ConditionType.REGEX:
        return RegexCondition(
            pattern=str(_required(data, "pattern", "value")),
            case_sensitive=bool(data.get("case_sensitive", False)),
        )

    if ctype in METRIC_TYPES:
        return ThresholdCondition(
            metric=ctype,
            value=float(data["value"]),
            operator=Operator(data.get("operator", Operator.GREATER_THAN.value)),
        )

    if ctype == ConditionType.SENTIMENT:
        return SentimentCondition(
            value=float(data["value"]),
            operator=Operator(data.get("operator", Operator.LESS_THAN.value)),
        )

    if ctype == ConditionType.LINK_DOMAIN:
        return LinkDomainCondition(domains=_as_list(data.get("domains", data.get("value"))))

    if ctype == ConditionType.IMAGE_LABEL:
        return ImageLabelCondition(
            labels=_as_list(data.get("labels", data.get("value"))),
            min_confidence=float(data.get("min_confidence", 0.5)),
        )

    if ctype == ConditionType.LANGUAGE:
        return LanguageCondition(languages=_as_list(data.get("languages", data.get("value"))))

    if ctype == ConditionType.TIME_WINDOW:
        if "value" in data and "start_hour" not in data:
            # "9-17" shorthand
            start, _, end = str(data["value"]).partition("-")
            return TimeWindowCondition(start_hour=int(start), end_hour=int(end))
        return TimeWindowCondition(start_hour=int(data["start_hour"]), end_hour=int(data["end_hour"]))

    raise ValueError(f"Unsupported condition type: {ctype.value}")


def _variant_to_dict(variant: Any, skip: tuple[str, ...] = ()) -> dict[str, Any]:
    data: dict[str, Any] = {"type": variant.type.value}
    for f in fields(variant):
        if f.name in skip:
            continue
        value = getattr(variant, f.name)
        data[f.name] = value.value if isinstance(value, Enum) else value
    return data


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    return _variant_to_dict(condition, skip=("metric",))


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass
class RemoveContentAction:
    reason: str = "Content deleted by auto-moderation"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.DELETE


@dataclass
class FlagAction:
    reason: str = "Content flagged for review"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.FLAG


@dataclass
class WarnAction:
    message: str = "Automated warning issued"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.WARN


@dataclass
class SuspendAction:
    duration: int = 60  # minutes
    reason: str = "Suspended by auto-moderation"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.SUSPEND


@dataclass
class BanAction:
    duration: Optional[int] = None  # minutes; None = permanent
    reason: str = "Banned by auto-moderation"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.BAN


@dataclass
class QuarantineAction:
    reason: str = "Content quarantined pending review"
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.QUARANTINE


@dataclass
class NotifyModeratorsAction:
    message: str = "Moderators notified for review"
    moderator_ids: list[str] = field(default_factory=list)
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.NOTIFY_MODERATORS


@dataclass
class EscalateAction:
    level: EscalationLevel = EscalationLevel.MEDIUM
    message: str = "Escalated by auto-moderation"
    require_manual_review: bool = True

    type: ClassVar[ActionType] = ActionType.ESCALATE


@dataclass
class LogOnlyAction:
    require_manual_review: bool = False

    type: ClassVar[ActionType] = ActionType.LOG_ONLY


Action = Union[
    RemoveContentAction,
    FlagAction,
    WarnAction,
    SuspendAction,
    BanAction,
    QuarantineAction,
    NotifyModeratorsAction,
    EscalateAction,
    LogOnlyAction,
]

_ACTION_CLASSES: dict[ActionType, type] = {
    ActionType.DELETE: RemoveContentAction,
    ActionType.FLAG: FlagAction,
    ActionType.WARN: WarnAction,
    ActionType.SUSPEND: SuspendAction,
    ActionType.BAN: BanAction,
    ActionType.QUARANTINE: QuarantineAction,
    ActionType.NOTIFY_MODERATORS: NotifyModeratorsAction,
    ActionType.ESCALATE: EscalateAction,
    ActionType.LOG_ONLY: LogOnlyAction,
}


def action_from_dict(data: dict[str, Any]) -> Action:
    """Build an action from its stored dict.

    Parameters may sit at the top level or under a ``parameters`` key.
    Unknown parameters are ignored.
    """
    atype = ActionType(data["type"])
    cls = _ACTION_CLASSES[atype]
    params = dict(data.get("parameters") or {})
    params.update({k: v for k, v in data.items() if k not in ("type", "parameters")})
    allowed = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in params.items() if k in allowed}
    if "level" in kwargs:
        kwargs["level"] = EscalationLevel(kwargs["level"])
    if "moderator_ids" in kwargs:
        kwargs["moderator_ids"] = _as_list(kwargs["moderator_ids"])
    return cls(**kwargs)


def action_to_dict(action: Action) -> dict[str, Any]:
    return _variant_to_dict(action)


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------


@dataclass
class RuleSchedule:
    """Restricts when a rule is active. Days use 0=Sunday .. 6=Saturday."""

    enabled: bool = False
    start_time: str = ""  # HH:MM
    end_time: str = ""  # HH:MM
    days_of_week: list[int] = field(default_factory=list)

    def admits(self, when: datetime) -> bool:
        if not self.enabled:
            return True
        if self.start_time and self.end_time:
            start_hour = int(self.start_time.split(":")[0])
            end_hour = int(self.end_time.split(":")[0])
            if when.hour < start_hour or when.hour > end_hour:
                return False
        # Python's weekday() is Monday=0
        sunday_based = (when.weekday() + 1) % 7
        if self.days_of_week and sunday_based not in self.days_of_week:
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleSchedule:
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=data.get("start_time", "") or "",
            end_time=data.get("end_time", "") or "",
            days_of_week=[int(d) for d in data.get("days_of_week", [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "days_of_week": list(self.days_of_week),
        }


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------


@dataclass
class Rule:
    """A persisted auto-moderation rule."""

    name: str
    trigger_type: TriggerType
    target_types: list[TargetType]
    conditions: list[Condition]
    actions: list[Action]
    id: str = ""
    description: str = ""
    priority: int = 5
    is_active: bool = True
    cooldown_period: Optional[int] = None  # seconds
    max_triggers_per_hour: Optional[int] = None
    whitelist_users: list[str] = field(default_factory=list)
    blacklist_users: list[str] = field(default_factory=list)
    exempt_roles: list[str] = field(default_factory=list)
    schedule: Optional[RuleSchedule] = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            self.id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = utcnow().isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at

    def applies_to(self, target_type: TargetType) -> bool:
        return target_type in self.target_types

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        schedule = data.get("schedule")
        return cls(
            id=data.get("id", ""),
            name=data["name"],
            description=data.get("description", ""),
            priority=int(data.get("priority", 5)),
            trigger_type=TriggerType(data["trigger_type"]),
            target_types=[TargetType(t) for t in data["target_types"]],
            conditions=[condition_from_dict(c) for c in data["conditions"]],
            actions=[action_from_dict(a) for a in data["actions"]],
            is_active=bool(data.get("is_active", True)),
            cooldown_period=data.get("cooldown_period"),
            max_triggers_per_hour=data.get("max_triggers_per_hour"),
            whitelist_users=list(data.get("whitelist_users") or []),
            blacklist_users=list(data.get("blacklist_users") or []),
            exempt_roles=[str(r).lower() for r in data.get("exempt_roles") or []],
            schedule=RuleSchedule.from_dict(schedule) if schedule else None,
            created_by=data.get("created_by", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "trigger_type": self.trigger_type.value,
            "target_types": [t.value for t in self.target_types],
            "conditions": [condition_to_dict(c) for c in self.conditions],
            "actions": [action_to_dict(a) for a in self.actions],
            "is_active": self.is_active,
            "cooldown_period": self.cooldown_period,
            "max_triggers_per_hour": self.max_triggers_per_hour,
            "whitelist_users": list(self.whitelist_users),
            "blacklist_users": list(self.blacklist_users),
            "exempt_roles": list(self.exempt_roles),
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "metadata": dict(self.metadata),
        }


def evaluation_order(rules: list[Rule]) -> list[Rule]:
    """Sort by priority descending, then creation time ascending."""
    return sorted(rules, key=lambda r: (-r.priority, parse_timestamp(r.created_at)))


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@dataclass
class ContentAuthor:
    id: str
    account_age_days: int = 0
    karma: int = 0
    recent_post_count: int = 0  # posts in the last hour


@dataclass
class ContentItem:
    """The subject being moderated. Owned by the content store; read-only here."""

    id: str
    target_type: TargetType
    author: ContentAuthor
    text: str = ""
    title: str = ""
    links: list[str] = field(default_factory=list)
    language: str = ""
    sentiment: Optional[float] = None
    image_labels: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.target_type, str):
            self.target_type = TargetType(self.target_type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentItem:
        author = data.get("author") or {}
        return cls(
            id=data["id"],
            target_type=TargetType(data["target_type"]),
            author=ContentAuthor(
                id=author.get("id", ""),
                account_age_days=int(author.get("account_age_days", 0)),
                karma=int(author.get("karma", 0)),
                recent_post_count=int(author.get("recent_post_count", 0)),
            ),
            text=data.get("text", ""),
            title=data.get("title", ""),
            links=list(data.get("links") or []),
            language=data.get("language", ""),
            sentiment=data.get("sentiment"),
            image_labels={k: float(v) for k, v in (data.get("image_labels") or {}).items()},
            metadata=dict(data.get("metadata") or {}),
        )


# ---------------------------------------------------------------------------
# Evaluation results
# ---------------------------------------------------------------------------


@dataclass
class ConditionResult:
    type: ConditionType
    matched: bool
    reason: str = ""


@dataclass
class MatchResult:
    """A rule whose conditions all held for a content item."""

    rule: Rule
    target_id: str
    target_type: TargetType
    author_id: str = ""
    conditions: list[ConditionResult] = field(default_factory=list)

    @property
    def rule_id(self) -> str:
        return self.rule.id

    @property
    def actions(self) -> list[Action]:
        return self.rule.actions

    @property
    def action_types(self) -> list[ActionType]:
        return [a.type for a in self.rule.actions]
