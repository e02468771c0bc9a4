"""Tests for the file-backed content store."""

import tempfile
from pathlib import Path

import pytest

from forumguard.content import JsonContentStore
from forumguard.errors import ContentNotFoundError, ModerationError
from forumguard.reports.models import ContentType


def test_flag_and_hide_post():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonContentStore(tmpdir)
        store.add_topic("t1", "Castles", "alice")
        store.add_post("p1", "t1", "hello", "alice")

        assert store.exists(ContentType.POST, "p1")
        assert store.exists(ContentType.TOPIC, "t1")
        assert not store.exists(ContentType.TOPIC, "p1")
        assert store.get_author("p1") == "alice"
        assert store.get_container_path("p1") == "/forums/topics/t1"

        store.set_flagged("p1", "Multiple community reports", "SYSTEM")
        assert store.get_status("p1") == "FLAGGED"
        store.set_inactive("p1", "SYSTEM")
        assert store.get_status("p1") == "DELETED"

        with pytest.raises(ContentNotFoundError):
            store.set_inactive("missing", "SYSTEM")


def test_corrupt_storage_is_not_overwritten():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = JsonContentStore(tmpdir)
        store.add_topic("t1", "Castles", "alice")
        posts = Path(tmpdir) / "content" / "posts.json"
        posts.write_text('{"p1": {"id": "p1"')

        with pytest.raises(ModerationError):
            store.add_post("p2", "t1", "hello", "bob")
        with pytest.raises(ModerationError):
            store.exists(ContentType.POST, "p1")
        assert posts.read_text() == '{"p1": {"id": "p1"'
