"""Moderation action log and rule statistics.

Every rule match produces exactly one immutable ``ModerationActionRecord``.
Records are appended as newline-delimited JSON to daily files under
``<data_dir>/audit/``; nothing is ever rewritten. Statistics are recomputed
from the records on every read.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

from automod.config import get_settings
from automod.rules.models import parse_timestamp, utcnow

if TYPE_CHECKING:
    from automod.rules.executor import ActionOutcome

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ModerationActionRecord:
    """One rule match and what was done about it."""

    rule_id: str
    rule_name: str
    target_type: str
    target_id: str
    action_types: tuple[str, ...]
    status: OutcomeStatus
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())
    is_automatic: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.timestamp)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["action_types"] = list(self.action_types)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModerationActionRecord:
        return cls(
            id=data["id"],
            rule_id=data["rule_id"],
            rule_name=data.get("rule_name", ""),
            target_type=data["target_type"],
            target_id=data["target_id"],
            action_types=tuple(data.get("action_types", [])),
            status=OutcomeStatus(data["status"]),
            timestamp=data["timestamp"],
            is_automatic=data.get("is_automatic", True),
            metadata=data.get("metadata", {}),
        )


@dataclass
class RuleStatistics:
    """Trigger counts and success rate over a time window."""

    rule_id: Optional[str]
    window_start: str
    window_end: str
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 1.0
    histogram: dict[str, int] = field(default_factory=dict)  # YYYY-MM-DD -> triggers
    last_triggered: Optional[str] = None


class AuditRecorder:
    """Append-only moderation action log.

    Also answers the trigger-history questions the evaluator asks:
    when a rule last fired on a target, and how often it fired recently.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir else get_settings().store_dir("audit")
        self._base_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def _log_files(self, since: Optional[datetime], until: Optional[datetime]) -> list[Path]:
        """Day files that can hold records in ``[since, until]``."""
        paths = sorted(self._base_dir.glob("*.jsonl"))
        if since is None and until is None:
            return paths
        selected = []
        for path in paths:
            try:
                day = date.fromisoformat(path.stem)
            except ValueError:
                selected.append(path)
                continue
            # one day of slack either side for timestamps in other offsets
            if since is not None and day < since.date() - timedelta(days=1):
                continue
            if until is not None and day > until.date() + timedelta(days=1):
                continue
            selected.append(path)
        return selected

    def _read_all_records(
        self, since: Optional[datetime] = None, until: Optional[datetime] = None
    ) -> list[ModerationActionRecord]:
        records: list[ModerationActionRecord] = []
        for path in self._log_files(since, until):
            for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
                if not line.strip():
                    continue
                try:
                    records.append(ModerationActionRecord.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError) as exc:
                    logger.warning("Skipping malformed record %s:%d: %s", path.name, lineno, exc)
        return records

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self, outcome: Union[ActionOutcome, ModerationActionRecord]
    ) -> ModerationActionRecord:
        """Append the record for an execution outcome and return it."""
        entry = outcome if isinstance(outcome, ModerationActionRecord) else outcome.record
        log_file = self._log_file_for_date(entry.created_at)
        with log_file.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(entry.to_dict()) + "\n")
        logger.debug("Recorded %s for rule %s on %s", entry.status.value, entry.rule_id, entry.target_id)
        return entry

    # ------------------------------------------------------------------
    # Trigger history
    # ------------------------------------------------------------------

    def last_triggered(
        self, rule_id: str, target_id: str, since: Optional[datetime] = None
    ) -> Optional[datetime]:
        """Return when *rule_id* last fired on *target_id*.

        With *since*, only triggers at or after it are considered and older
        day files are not read.
        """
        times = [
            r.created_at
            for r in self._read_all_records(since=since)
            if r.rule_id == rule_id
            and r.target_id == target_id
            and (since is None or r.created_at >= since)
        ]
        return max(times) if times else None

    def trigger_count(self, rule_id: str, since: datetime, until: Optional[datetime] = None) -> int:
        """Count how often *rule_id* fired in ``[since, until]``."""
        until = until or utcnow()
        return sum(
            1
            for r in self._read_all_records(since=since, until=until)
            if r.rule_id == rule_id and since <= r.created_at <= until
        )

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def get_records(
        self,
        *,
        rule_id: Optional[str] = None,
        target_id: Optional[str] = None,
        status: Optional[OutcomeStatus] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 200,
    ) -> list[ModerationActionRecord]:
        """Return filtered records, newest first."""
        records = self._read_all_records()

        if rule_id:
            records = [r for r in records if r.rule_id == rule_id]
        if target_id:
            records = [r for r in records if r.target_id == target_id]
        if status:
            records = [r for r in records if r.status == status]
        if start:
            records = [r for r in records if r.created_at >= start]
        if end:
            records = [r for r in records if r.created_at <= end]

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def statistics(
        self,
        rule_id: Optional[str] = None,
        window: timedelta = timedelta(days=7),
        now: Optional[datetime] = None,
    ) -> RuleStatistics:
        """Summarise outcomes for one rule (or all rules) over *window*."""
        now = now or utcnow()
        start = now - window
        all_for_rule = [
            r for r in self._read_all_records() if rule_id is None or r.rule_id == rule_id
        ]
        in_window = [r for r in all_for_rule if start <= r.created_at <= now]

        total = len(in_window)
        successful = sum(1 for r in in_window if r.succeeded)
        histogram = {d.isoformat(): 0 for d in _days_between(start.date(), now.date())}
        for r in in_window:
            day = r.created_at.date().isoformat()
            histogram[day] = histogram.get(day, 0) + 1

        last = max((r.created_at for r in all_for_rule), default=None)

        return RuleStatistics(
            rule_id=rule_id,
            window_start=start.isoformat(),
            window_end=now.isoformat(),
            total=total,
            successful=successful,
            failed=total - successful,
            success_rate=successful / total if total else 1.0,
            histogram=histogram,
            last_triggered=last.isoformat() if last else None,
        )

    def overview(
        self,
        window: timedelta = timedelta(days=30),
        now: Optional[datetime] = None,
        top: int = 5,
    ) -> dict[str, Any]:
        """Action-type distribution and most active rules over *window*."""
        now = now or utcnow()
        records = [
            r
            for r in self._read_all_records(since=now - window, until=now)
            if now - window <= r.created_at <= now
        ]

        by_action: Counter[str] = Counter()
        for r in records:
            by_action.update(r.action_types)
        by_rule = Counter(r.rule_id for r in records)
        names = {r.rule_id: r.rule_name for r in records}

        return {
            "total": len(records),
            "by_status": dict(Counter(r.status.value for r in records)),
            "by_action_type": dict(by_action),
            "top_rules": [
                {"rule_id": rid, "rule_name": names[rid], "count": count}
                for rid, count in by_rule.most_common(top)
            ],
        }


def _days_between(first: date, last: date) -> list[date]:
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]
