"""Action execution for matched rules.

Actions run in the order the rule lists them. Enforcement is best-effort:
a failing action is recorded on its ``ActionResult`` and the remaining
actions still run. Each match yields exactly one ``ModerationActionRecord``
whose status is FAILED if any action failed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from automod.audit.recorder import AuditRecorder, ModerationActionRecord, OutcomeStatus
from automod.collaborators import ContentStore, IdentityStore, NotificationDispatcher
from automod.exceptions import ActionExecutionFailure
from automod.rules.models import (
    Action,
    ActionType,
    BanAction,
    EscalateAction,
    FlagAction,
    LogOnlyAction,
    MatchResult,
    NotifyModeratorsAction,
    QuarantineAction,
    RemoveContentAction,
    SuspendAction,
    TargetType,
    WarnAction,
)

logger = logging.getLogger(__name__)

MODERATORS_CHANNEL = "moderators"


@dataclass
class ActionResult:
    """What happened when one action ran."""

    action_type: ActionType
    success: bool
    detail: str = ""
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.action_type.value,
            "success": self.success,
            "detail": self.detail,
            "error": self.error,
        }


@dataclass
class ActionOutcome:
    """All action results for one match, plus the record written for it."""

    match: MatchResult
    record: ModerationActionRecord
    results: list[ActionResult] = field(default_factory=list)

    @property
    def status(self) -> OutcomeStatus:
        return self.record.status

    @property
    def failures(self) -> list[ActionResult]:
        return [r for r in self.results if not r.success]

    @property
    def needs_manual_review(self) -> bool:
        return any(
            a.type == ActionType.ESCALATE or a.require_manual_review for a in self.match.actions
        )


class ActionExecutor:
    """Applies a matched rule's actions through the external collaborators."""

    def __init__(
        self,
        content_store: Optional[ContentStore] = None,
        identity: Optional[IdentityStore] = None,
        notifier: Optional[NotificationDispatcher] = None,
        recorder: Optional[AuditRecorder] = None,
    ) -> None:
        self._content = content_store
        self._identity = identity
        self._notifier = notifier
        self._recorder = recorder

    def execute(self, match: MatchResult) -> ActionOutcome:
        """Run every action of *match*'s rule and record the aggregate outcome."""
        results: list[ActionResult] = []
        for action in match.actions:
            try:
                detail = self._dispatch(action, match)
            except ActionExecutionFailure as exc:
                logger.warning("Rule %s: %s", match.rule_id, exc)
                results.append(ActionResult(action.type, False, error=exc.reason))
            except Exception as exc:
                logger.warning(
                    "Rule %s: %s raised %s: %s",
                    match.rule_id,
                    action.type.value,
                    type(exc).__name__,
                    exc,
                )
                results.append(ActionResult(action.type, False, error=str(exc) or type(exc).__name__))
            else:
                results.append(ActionResult(action.type, True, detail=detail))

        status = OutcomeStatus.FAILED if any(not r.success for r in results) else OutcomeStatus.COMPLETED
        record = ModerationActionRecord(
            rule_id=match.rule_id,
            rule_name=match.rule.name,
            target_type=match.target_type.value,
            target_id=match.target_id,
            action_types=tuple(a.type.value for a in match.actions),
            status=status,
            metadata={
                "author_id": match.author_id,
                "priority": match.rule.priority,
                "trigger_type": match.rule.trigger_type.value,
                "triggered_conditions": [c.type.value for c in match.conditions if c.matched],
                "actions": [r.to_dict() for r in results],
            },
        )
        if self._recorder is not None:
            self._recorder.record(record)

        return ActionOutcome(match=match, record=record, results=results)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, action: Action, match: MatchResult) -> str:
        rule_name = match.rule.name

        if isinstance(action, RemoveContentAction):
            content_id = self._content_target(action, match)
            self._require_content(action).remove_content(content_id, action.reason)
            return f"Removed {match.target_type.value} {content_id}"

        if isinstance(action, FlagAction):
            content_id = self._content_target(action, match)
            self._require_content(action).flag_content(content_id, f"{action.reason} ({rule_name})")
            return f"Flagged {content_id} for review"

        if isinstance(action, QuarantineAction):
            content_id = self._content_target(action, match)
            self._require_content(action).quarantine_content(content_id, action.reason)
            return f"Quarantined {content_id}"

        if isinstance(action, WarnAction):
            user_id = self._user_target(action, match)
            self._require_notifier(action).notify(user_id, action.message)
            return f"Warned {user_id}"

        if isinstance(action, SuspendAction):
            user_id = self._user_target(action, match)
            self._require_identity(action).suspend_user(user_id, action.duration, action.reason)
            return f"Suspended {user_id} for {action.duration} minutes"

        if isinstance(action, BanAction):
            user_id = self._user_target(action, match)
            self._require_identity(action).suspend_user(user_id, action.duration, action.reason)
            span = "permanently" if action.duration is None else f"for {action.duration} minutes"
            return f"Banned {user_id} {span}"

        if isinstance(action, NotifyModeratorsAction):
            notifier = self._require_notifier(action)
            message = f"{action.message}: rule '{rule_name}' on {match.target_type.value} {match.target_id}"
            for recipient in action.moderator_ids or [MODERATORS_CHANNEL]:
                notifier.notify(recipient, message)
            return "Moderators notified for review"

        if isinstance(action, EscalateAction):
            self._require_notifier(action).notify(
                MODERATORS_CHANNEL,
                f"[{action.level.value}] {action.message}: rule '{rule_name}' on {match.target_id}",
            )
            return f"Escalated at {action.level.value} level"

        if isinstance(action, LogOnlyAction):
            return "Action logged for analysis"

        raise ActionExecutionFailure(getattr(action, "type", "UNKNOWN"), "unsupported action")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _content_target(action: Action, match: MatchResult) -> str:
        if match.target_type == TargetType.USER:
            raise ActionExecutionFailure(action.type.value, "target is a user, not content")
        return match.target_id

    @staticmethod
    def _user_target(action: Action, match: MatchResult) -> str:
        if match.target_type == TargetType.USER:
            return match.target_id
        if not match.author_id:
            raise ActionExecutionFailure(action.type.value, "content has no known author")
        return match.author_id

    def _require_content(self, action: Action) -> ContentStore:
        if self._content is None:
            raise ActionExecutionFailure(action.type.value, "no content store configured")
        return self._content

    def _require_identity(self, action: Action) -> IdentityStore:
        if self._identity is None:
            raise ActionExecutionFailure(action.type.value, "no identity store configured")
        return self._identity

    def _require_notifier(self, action: Action) -> NotificationDispatcher:
        if self._notifier is None:
            raise ActionExecutionFailure(action.type.value, "no notification dispatcher configured")
        return self._notifier
