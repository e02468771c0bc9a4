"""Tests for the forumguard command line."""

import tempfile

from click.testing import CliRunner

from forumguard.cli import main
from forumguard.reports.ledger import ReportLedger


def _run(home, *args):
    return CliRunner().invoke(main, ["--home", home, *args])


def test_analyze_clean_text():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _run(tmpdir, "analyze", "A quiet walk around the old abbey")
    assert result.exit_code == 0, result.output
    assert "APPROVE" in result.output
    assert "appropriate" in result.output


def test_analyze_promotional_text():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _run(tmpdir, "analyze", "BUY NOW!!! FREE MONEY http://x.co user@x.com 555-123-4567")
    assert result.exit_code == 0, result.output
    assert "REJECT" in result.output
    assert "Multiple spam indicators detected" in result.output


def test_report_flow_flags_post_and_notifies_author():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert _run(tmpdir, "content", "add-topic", "t1", "Castles", "-a", "alice").exit_code == 0
        result = _run(tmpdir, "content", "add-post", "p1", "t1", "Look at this castle", "-a", "alice")
        assert result.exit_code == 0, result.output
        assert "Advisory" in result.output

        for reporter in ("u1", "u2"):
            result = _run(tmpdir, "report", "file", "POST", "p1", "-r", reporter, "--reason", "spam")
            assert result.exit_code == 0, result.output

        result = _run(tmpdir, "report", "file", "post", "p1", "-r", "u3", "--reason", "spam")
        assert result.exit_code == 0, result.output
        assert "FLAGGED" in result.output

        result = _run(tmpdir, "inbox", "alice")
        assert result.exit_code == 0, result.output
        assert "content_flagged" in result.output

        result = _run(tmpdir, "report", "unresolved")
        assert "No unresolved reports" in result.output

        result = _run(tmpdir, "history", "--automated")
        assert result.exit_code == 0, result.output
        assert "FLAG" in result.output


def test_duplicate_report_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        _run(tmpdir, "content", "add-topic", "t1", "Castles", "-a", "alice")
        _run(tmpdir, "content", "add-post", "p1", "t1", "hello", "-a", "alice", "--no-check")
        assert _run(tmpdir, "report", "file", "POST", "p1", "-r", "u1").exit_code == 0

        result = _run(tmpdir, "report", "file", "POST", "p1", "-r", "u1")
        assert result.exit_code == 1
        assert "already reported" in result.output


def test_report_unknown_post_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        result = _run(tmpdir, "report", "file", "POST", "missing", "-r", "u1")
    assert result.exit_code == 1
    assert "not_found" in result.output


def test_resolve_and_stats():
    with tempfile.TemporaryDirectory() as tmpdir:
        _run(tmpdir, "content", "add-topic", "t1", "Castles", "-a", "alice")
        _run(tmpdir, "content", "add-post", "p1", "t1", "hello", "-a", "alice", "--no-check")
        _run(tmpdir, "report", "file", "POST", "p1", "-r", "u1", "--reason", "harassment")
        [report] = ReportLedger(tmpdir).list_unresolved()

        result = _run(tmpdir, "report", "resolve", report.id, "missing-id", "-m", "mod1", "--action", "ignore")
        assert result.exit_code == 1
        assert "1 ok" in result.output
        assert "Report not found: missing-id" in result.output

        result = _run(tmpdir, "report", "stats")
        assert result.exit_code == 0, result.output
        assert "Resolved:   1" in result.output

        result = _run(tmpdir, "report", "priority")
        assert "No high-priority content" in result.output
