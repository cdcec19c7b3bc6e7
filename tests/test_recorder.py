"""Tests for the moderation action log and rule statistics."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from automod.audit.recorder import AuditRecorder, ModerationActionRecord, OutcomeStatus

NOW = datetime(2024, 3, 6, 12, 0, tzinfo=timezone.utc)


def _record(rule_id="r1", status=OutcomeStatus.COMPLETED, when=NOW, target_id="t1", actions=("FLAG",)):
    return ModerationActionRecord(
        rule_id=rule_id,
        rule_name=f"Rule {rule_id}",
        target_type="POST",
        target_id=target_id,
        action_types=tuple(actions),
        status=status,
        timestamp=when.isoformat(),
    )


def test_success_rate_is_successful_over_total():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        for i in range(5):
            status = OutcomeStatus.FAILED if i in (1, 3) else OutcomeStatus.COMPLETED
            recorder.record(_record(status=status, when=NOW - timedelta(hours=i)))

        stats = recorder.statistics("r1", now=NOW)
        assert stats.total == 5
        assert stats.successful == 3
        assert stats.failed == 2
        assert stats.success_rate == 3 / 5


def test_success_rate_defaults_to_one_without_records():
    with tempfile.TemporaryDirectory() as tmp:
        stats = AuditRecorder(tmp).statistics("r1", now=NOW)
        assert stats.total == 0
        assert stats.success_rate == 1.0
        assert stats.last_triggered is None


def test_histogram_is_zero_filled_over_window():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(when=NOW - timedelta(days=2)))
        recorder.record(_record(when=NOW))
        recorder.record(_record(when=NOW - timedelta(days=30)))  # outside the window

        stats = recorder.statistics("r1", window=timedelta(days=3), now=NOW)
        assert stats.histogram == {
            "2024-03-03": 0,
            "2024-03-04": 1,
            "2024-03-05": 0,
            "2024-03-06": 1,
        }
        assert stats.total == 2
        assert stats.last_triggered == NOW.isoformat()


def test_records_go_to_daily_files():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(when=NOW))
        recorder.record(_record(when=NOW - timedelta(days=1)))
        assert sorted(p.name for p in Path(tmp).glob("*.jsonl")) == ["2024-03-05.jsonl", "2024-03-06.jsonl"]


def test_get_records_filters_newest_first():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(rule_id="r1", when=NOW - timedelta(hours=2)))
        recorder.record(_record(rule_id="r2", when=NOW - timedelta(hours=1), status=OutcomeStatus.FAILED))
        recorder.record(_record(rule_id="r1", when=NOW, target_id="t2"))

        r1 = recorder.get_records(rule_id="r1")
        assert [r.target_id for r in r1] == ["t2", "t1"]
        assert [r.rule_id for r in recorder.get_records(status=OutcomeStatus.FAILED)] == ["r2"]
        assert len(recorder.get_records(start=NOW - timedelta(minutes=90))) == 2
        assert len(recorder.get_records(limit=1)) == 1


def test_trigger_history_queries():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(when=NOW - timedelta(minutes=30)))
        recorder.record(_record(when=NOW - timedelta(minutes=90)))

        assert recorder.last_triggered("r1", "t1") == NOW - timedelta(minutes=30)
        assert recorder.last_triggered("r1", "other") is None
        assert recorder.trigger_count("r1", NOW - timedelta(hours=1), NOW) == 1


def test_malformed_lines_are_skipped():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record())
        with open(Path(tmp) / "2024-03-06.jsonl", "a") as fh:
            fh.write("{not json\n")
        assert len(recorder.get_records()) == 1


def test_overview_counts_action_types_and_top_rules():
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(rule_id="r1", actions=("FLAG", "WARN")))
        recorder.record(_record(rule_id="r1", actions=("FLAG",)))
        recorder.record(_record(rule_id="r2", actions=("DELETE",), status=OutcomeStatus.FAILED))

        summary = recorder.overview(now=NOW)
        assert summary["total"] == 3
        assert summary["by_status"] == {"COMPLETED": 2, "FAILED": 1}
        assert summary["by_action_type"] == {"FLAG": 2, "WARN": 1, "DELETE": 1}
        assert summary["top_rules"][0] == {"rule_id": "r1", "rule_name": "Rule r1", "count": 2}


def test_trigger_history_reads_only_recent_day_files(caplog):
    with tempfile.TemporaryDirectory() as tmp:
        recorder = AuditRecorder(tmp)
        recorder.record(_record(when=NOW - timedelta(minutes=30)))
        recorder.record(_record(when=NOW - timedelta(days=4)))
        # An old day file that would log a warning if it were read
        (Path(tmp) / "2024-02-01.jsonl").write_text("not json\n", encoding="utf-8")

        with caplog.at_level("WARNING", logger="automod.audit.recorder"):
            assert recorder.last_triggered("r1", "t1", since=NOW - timedelta(hours=1)) == NOW - timedelta(
                minutes=30
            )
            assert recorder.last_triggered("r1", "t1", since=NOW - timedelta(minutes=10)) is None
            assert recorder.trigger_count("r1", NOW - timedelta(hours=1), NOW) == 1
        assert "Skipping malformed record" not in caplog.text

        # Without a bound every day file is read
        assert recorder.last_triggered("r1", "t1") == NOW - timedelta(minutes=30)
