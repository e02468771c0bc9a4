"""Forum content state consumed by the ledger and the escalation policy.

The moderation core only needs a narrow view of forum content: whether an
item exists, how to flag or hide a post, and who wrote it. :class:`ContentStore`
describes that view; :class:`JsonContentStore` is a file-backed
implementation stored under ``<base_dir>/content/``.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from forumguard.errors import ContentNotFoundError, ModerationError
from forumguard.reports.models import ContentType


class ContentStore(Protocol):
    """Content-state collaborator. Post lookups raise ``ContentNotFoundError``."""

    def exists(self, content_type: ContentType, content_id: str) -> bool: ...

    def set_flagged(self, content_id: str, reason: str, by: str) -> None: ...

    def set_inactive(self, content_id: str, by: str) -> None: ...

    def get_author(self, content_id: str) -> str: ...

    def get_container_path(self, content_id: str) -> str: ...

    def get_status(self, content_id: str) -> str: ...


def post_status(post: dict[str, Any]) -> str:
    """Derive a post's display status from its flags."""
    if not post.get("is_active", True):
        return "DELETED"
    if post.get("is_flagged", False):
        return "FLAGGED"
    return "ACTIVE"


class JsonContentStore:
    """File-based post and topic storage.

    Storage path: ``<base_dir>/content/`` with:
    - ``posts.json`` -- dict of post id -> post dict
    - ``topics.json`` -- dict of topic id -> topic dict
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        base = Path(base_dir) if base_dir else Path.home() / ".forumguard"
        self._base = base / "content"
        self._base.mkdir(parents=True, exist_ok=True)
        self._posts_path = self._base / "posts.json"
        self._topics_path = self._base / "topics.json"
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> dict[str, dict]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError) as exc:
            raise ModerationError(f"Content storage unreadable: {path.name}: {exc}") from exc

    def _write(self, path: Path, data: dict[str, dict]) -> None:
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(path)

    def _get_post(self, content_id: str) -> dict[str, Any]:
        post = self._read(self._posts_path).get(str(content_id))
        if post is None:
            raise ContentNotFoundError("post", str(content_id))
        return post

    def _update_post(self, content_id: str, **changes: Any) -> dict[str, Any]:
        with self._lock:
            posts = self._read(self._posts_path)
            post = posts.get(str(content_id))
            if post is None:
                raise ContentNotFoundError("post", str(content_id))
            post.update(changes)
            post["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._write(self._posts_path, posts)
            return post

    # ------------------------------------------------------------------
    # Authoring helpers
    # ------------------------------------------------------------------

    def add_topic(self, topic_id: str, title: str, created_by: str) -> dict[str, Any]:
        topic = {
            "id": str(topic_id),
            "title": title,
            "created_by": created_by,
            "is_active": True,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            topics = self._read(self._topics_path)
            topics[str(topic_id)] = topic
            self._write(self._topics_path, topics)
        return topic

    def add_post(
        self, post_id: str, topic_id: str, content: str, created_by: str
    ) -> dict[str, Any]:
        post = {
            "id": str(post_id),
            "topic_id": str(topic_id),
            "content": content,
            "created_by": created_by,
            "is_active": True,
            "is_flagged": False,
            "flagged_by": None,
            "flag_reason": None,
            "updated_by": created_by,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        with self._lock:
            posts = self._read(self._posts_path)
            posts[str(post_id)] = post
            self._write(self._posts_path, posts)
        return post

    def get_post(self, content_id: str) -> Optional[dict[str, Any]]:
        return self._read(self._posts_path).get(str(content_id))

    def get_topic(self, topic_id: str) -> Optional[dict[str, Any]]:
        return self._read(self._topics_path).get(str(topic_id))

    # ------------------------------------------------------------------
    # ContentStore
    # ------------------------------------------------------------------

    def exists(self, content_type: ContentType, content_id: str) -> bool:
        path = self._posts_path if content_type == ContentType.POST else self._topics_path
        return str(content_id) in self._read(path)

    def set_flagged(self, content_id: str, reason: str, by: str) -> None:
        self._update_post(
            content_id, is_flagged=True, flagged_by=by, flag_reason=reason, updated_by=by
        )

    def set_inactive(self, content_id: str, by: str) -> None:
        self._update_post(content_id, is_active=False, updated_by=by)

    def get_author(self, content_id: str) -> str:
        return self._get_post(content_id)["created_by"]

    def get_container_path(self, content_id: str) -> str:
        return f"/forums/topics/{self._get_post(content_id)['topic_id']}"

    def get_status(self, content_id: str) -> str:
        return post_status(self._get_post(content_id))
