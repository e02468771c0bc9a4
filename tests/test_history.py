"""Tests for the JSON-lines moderation history."""

import tempfile
from pathlib import Path

from forumguard.history import ModerationHistory


def test_record_and_filter():
    with tempfile.TemporaryDirectory() as tmpdir:
        history = ModerationHistory(tmpdir)
        history.record("SYSTEM", "POST", "p1", "FLAG", automated=True, affected_count=3)
        history.record("mod1", "POST", "p2", "RESOLVE_IGNORE")
        history.record("mod1", "TOPIC", "t1", "RESOLVE_FLAG")

        assert len(history.get_entries()) == 3
        assert len(history.get_entries(moderator_id="mod1")) == 2
        assert len(history.get_entries(content_type="TOPIC")) == 1
        assert [e.content_id for e in history.get_entries(automated=True)] == ["p1"]
        assert len(history.get_entries(limit=1)) == 1

        files = list((Path(tmpdir) / "history").glob("*.jsonl"))
        assert len(files) == 1


def test_malformed_lines_skipped():
    with tempfile.TemporaryDirectory() as tmpdir:
        history = ModerationHistory(tmpdir)
        entry = history.record("SYSTEM", "POST", "p1", "DELETE", automated=True)
        (Path(tmpdir) / "history" / "2000-01-01.jsonl").write_text("not json\n\n")

        assert [e.id for e in history.for_content("POST", "p1")] == [entry.id]


def test_statistics():
    with tempfile.TemporaryDirectory() as tmpdir:
        history = ModerationHistory(tmpdir)
        history.record("SYSTEM", "POST", "p1", "FLAG", automated=True)
        history.record("SYSTEM", "POST", "p2", "FLAG", automated=True)
        history.record("mod1", "POST", "p3", "RESOLVE_DELETE")

        stats = history.statistics()
        assert stats["action_type_counts"] == {"FLAG": 2, "RESOLVE_DELETE": 1}
        assert stats["automated_vs_manual"] == {"automated": 2, "manual": 1}
        assert history.statistics(since="2999-01-01")["action_type_counts"] == {}
