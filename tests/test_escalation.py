"""Tests for threshold escalation and per-content locking."""

import tempfile
import threading

import pytest

from forumguard.content import JsonContentStore
from forumguard.errors import ContentNotFoundError, ValidationError
from forumguard.escalation.locks import KeyedLock
from forumguard.escalation.policy import EscalationAction, EscalationPolicy
from forumguard.history import ModerationHistory
from forumguard.reports.ledger import ReportLedger
from forumguard.reports.models import ContentType, ResolutionAction


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify(self, recipient, category, message, link, actor):
        self.calls.append((recipient, category, message, link, actor))


class FailingNotifier:
    def notify(self, recipient, category, message, link, actor):
        raise RuntimeError("mail server down")


class VanishingStore(JsonContentStore):
    """Reports can be filed, but the post is gone by the time escalation acts."""

    def get_status(self, content_id):
        raise ContentNotFoundError("post", content_id)


def _setup(tmpdir, store_cls=JsonContentStore, notifier=None, **thresholds):
    store = store_cls(tmpdir)
    store.add_topic("t1", "Heritage sites", "alice")
    store.add_post("p1", "t1", "hello", "alice")
    ledger = ReportLedger(tmpdir, store)
    history = ModerationHistory(tmpdir)
    policy = EscalationPolicy(ledger, store, notifier=notifier, history=history, **thresholds)
    return store, ledger, policy, history


def _file_and_evaluate(ledger, policy, reporter, content_type="POST", content_id="p1"):
    ledger.file_report(content_type, content_id, reporter, "SPAM")
    return policy.evaluate(content_type, content_id)


# --- Threshold Tests ---


def test_below_threshold_does_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, ledger, policy, _ = _setup(tmpdir)
        for reporter in ("u1", "u2"):
            outcome = _file_and_evaluate(ledger, policy, reporter)
            assert outcome.action == EscalationAction.NONE
            assert not outcome.acted

        assert outcome.unresolved_count == 2
        assert store.get_status("p1") == "ACTIVE"


def test_third_report_flags_post():
    with tempfile.TemporaryDirectory() as tmpdir:
        notifier = RecordingNotifier()
        store, ledger, policy, history = _setup(tmpdir, notifier=notifier)
        _file_and_evaluate(ledger, policy, "u1")
        _file_and_evaluate(ledger, policy, "u2")
        outcome = _file_and_evaluate(ledger, policy, "u3")

        assert outcome.action == EscalationAction.FLAGGED
        assert outcome.unresolved_count == 3
        assert len(outcome.resolved_report_ids) == 3

        post = store.get_post("p1")
        assert post["is_flagged"]
        assert post["is_active"]
        assert post["flagged_by"] == "SYSTEM"
        assert post["flag_reason"] == "Multiple community reports"

        assert ledger.count_unresolved("POST", "p1") == 0
        for report in ledger.list_for_content("POST", "p1"):
            assert report.resolution_action == ResolutionAction.AUTO_FLAG
            assert report.resolved_by == "SYSTEM"
            assert report.resolution_notes == (
                "Content automatically flagged due to multiple community reports"
            )

        assert notifier.calls == [
            (
                "alice",
                "content_flagged",
                "Your post was automatically flagged due to community reports: "
                "Multiple community reports",
                "/forums/topics/t1",
                "SYSTEM",
            )
        ]

        [entry] = history.for_content("POST", "p1")
        assert entry.automated
        assert entry.action_type == "FLAG"
        assert entry.previous_status == "ACTIVE"
        assert entry.new_status == "FLAGGED"
        assert entry.affected_count == 3


def test_fourth_report_starts_a_new_batch():
    with tempfile.TemporaryDirectory() as tmpdir:
        notifier = RecordingNotifier()
        _, ledger, policy, _ = _setup(tmpdir, notifier=notifier)
        for reporter in ("u1", "u2", "u3"):
            _file_and_evaluate(ledger, policy, reporter)

        outcome = _file_and_evaluate(ledger, policy, "u4")
        assert outcome.action == EscalationAction.NONE
        assert outcome.unresolved_count == 1
        assert len(notifier.calls) == 1


def test_delete_threshold_removes_post():
    with tempfile.TemporaryDirectory() as tmpdir:
        notifier = RecordingNotifier()
        store, ledger, policy, history = _setup(tmpdir, notifier=notifier)
        # Reports land without evaluation, as if escalation was unavailable
        for i in range(10):
            ledger.file_report("POST", "p1", f"u{i}", "SPAM")

        outcome = policy.evaluate("POST", "p1")
        assert outcome.action == EscalationAction.REMOVED
        assert outcome.unresolved_count == 10
        assert len(outcome.resolved_report_ids) == 10

        post = store.get_post("p1")
        assert not post["is_active"]
        assert not post["is_flagged"]
        assert store.get_status("p1") == "DELETED"

        resolved = ledger.list_for_content("POST", "p1")
        assert {r.resolution_action for r in resolved} == {ResolutionAction.AUTO_DELETE}

        assert notifier.calls[0][1] == "content_deleted"
        assert notifier.calls[0][2] == (
            "Your post was automatically removed due to community reports: "
            "Community reports exceeded deletion threshold"
        )
        [entry] = history.get_entries(automated=True)
        assert entry.action_type == "DELETE"
        assert entry.new_status == "DELETED"


def test_custom_thresholds():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, ledger, policy, _ = _setup(tmpdir, flag_threshold=1, delete_threshold=2)
        outcome = _file_and_evaluate(ledger, policy, "u1")
        assert outcome.action == EscalationAction.FLAGGED


def test_invalid_thresholds_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonContentStore(tmpdir)
        ledger = ReportLedger(tmpdir, store)
        with pytest.raises(ValidationError):
            EscalationPolicy(ledger, store, flag_threshold=0)
        with pytest.raises(ValidationError):
            EscalationPolicy(ledger, store, flag_threshold=5, delete_threshold=5)


def test_topic_reports_never_escalate():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, ledger, policy, _ = _setup(tmpdir)
        for i in range(12):
            outcome = _file_and_evaluate(ledger, policy, f"u{i}", "TOPIC", "t1")

        assert outcome.action == EscalationAction.NONE
        assert outcome.unresolved_count == 12
        assert ledger.count_unresolved(ContentType.TOPIC, "t1") == 12


# --- Failure Tests ---


def test_failed_action_resolves_nothing():
    with tempfile.TemporaryDirectory() as tmpdir:
        _, ledger, policy, history = _setup(tmpdir, store_cls=VanishingStore)
        for reporter in ("u1", "u2", "u3"):
            ledger.file_report("POST", "p1", reporter, "SPAM")

        with pytest.raises(ContentNotFoundError):
            policy.evaluate("POST", "p1")

        assert ledger.count_unresolved("POST", "p1") == 3
        assert history.get_entries() == []


def test_notification_failure_does_not_fail_escalation():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, ledger, policy, _ = _setup(tmpdir, notifier=FailingNotifier())
        for reporter in ("u1", "u2"):
            _file_and_evaluate(ledger, policy, reporter)

        outcome = _file_and_evaluate(ledger, policy, "u3")
        assert outcome.action == EscalationAction.FLAGGED
        assert store.get_status("p1") == "FLAGGED"


# --- Concurrency Tests ---


def test_concurrent_evaluations_act_once():
    with tempfile.TemporaryDirectory() as tmpdir:
        notifier = RecordingNotifier()
        _, ledger, policy, history = _setup(tmpdir, notifier=notifier)
        for reporter in ("u1", "u2", "u3"):
            ledger.file_report("POST", "p1", reporter, "SPAM")

        outcomes = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            outcomes.append(policy.evaluate("POST", "p1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        actions = [o.action for o in outcomes]
        assert actions.count(EscalationAction.FLAGGED) == 1
        assert actions.count(EscalationAction.NONE) == 7
        assert len(notifier.calls) == 1
        assert len(history.get_entries()) == 1


def test_keyed_lock_releases_entries():
    locks = KeyedLock()
    with locks.hold(("POST", "1")):
        with locks.hold(("POST", "2")):
            assert len(locks) == 2
    assert len(locks) == 0


def test_keyed_lock_serializes_same_key():
    locks = KeyedLock()
    inside = []
    overlap = []

    def worker():
        with locks.hold("k"):
            if inside:
                overlap.append(True)
            inside.append(1)
            threading.Event().wait(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlap == []
    assert len(locks) == 0


class ReportDuringFlagStore(JsonContentStore):
    """Files one more report against the post while it is being flagged."""

    ledger = None

    def set_flagged(self, content_id, reason, by):
        self.ledger.file_report("POST", content_id, "late-reporter", "SPAM")
        super().set_flagged(content_id, reason, by)


def test_action_resolves_only_the_counted_batch():
    with tempfile.TemporaryDirectory() as tmpdir:
        store, ledger, policy, _ = _setup(tmpdir, store_cls=ReportDuringFlagStore)
        store.ledger = ledger
        for i in range(9):
            ledger.file_report("POST", "p1", f"u{i}", "SPAM")

        outcome = policy.evaluate("POST", "p1")
        assert outcome.action == EscalationAction.FLAGGED
        assert outcome.unresolved_count == 9
        assert len(outcome.resolved_report_ids) == 9

        [late] = ledger.unresolved_for("POST", "p1")
        assert late.reporter_id == "late-reporter"
        assert late.id not in outcome.resolved_report_ids
        assert policy.evaluate("POST", "p1").unresolved_count == 1
