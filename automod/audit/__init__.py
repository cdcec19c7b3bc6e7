"""Append-only moderation action log and rule statistics."""

from automod.audit.recorder import AuditRecorder, ModerationActionRecord, OutcomeStatus, RuleStatistics

__all__ = [
    "AuditRecorder",
    "ModerationActionRecord",
    "OutcomeStatus",
    "RuleStatistics",
]
