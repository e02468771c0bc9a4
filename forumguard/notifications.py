"""Notification delivery for moderation outcomes.

Three sinks are provided:

- :class:`NotificationInbox` persists notifications per recipient under
  ``<base_dir>/notifications/``.
- :class:`WebhookNotifier` POSTs a JSON payload signed with HMAC-SHA256,
  delivered via ``urllib.request``.
- :class:`DispatchingNotifier` fans a notification out to other sinks on a
  worker pool so the caller never waits on delivery. Sink failures are
  logged and dropped.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import threading
import urllib.request
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, recipient: str, category: str, message: str, link: str, actor: str) -> None: ...


# ------------------------------------------------------------------
# Data classes
# ------------------------------------------------------------------


@dataclass
class Notification:
    """A message addressed to one forum user."""

    id: str
    recipient: str
    category: str  # "content_flagged" | "content_deleted" | ...
    message: str
    link: str = ""
    actor: str = ""
    read: bool = False
    created_at: str = ""


# ------------------------------------------------------------------
# Inbox
# ------------------------------------------------------------------


class NotificationInbox:
    """Per-recipient notification storage with file-based JSON persistence."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        base = Path(base_dir) if base_dir else Path.home() / ".forumguard"
        self._base_dir = base / "notifications"
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._file = self._base_dir / "notifications.json"
        self._lock = threading.Lock()

    def _load(self) -> list[dict[str, Any]]:
        if self._file.exists():
            try:
                return json.loads(self._file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Notification store unreadable, starting empty")
                return []
        return []

    def _save(self, data: list[dict[str, Any]]) -> None:
        self._file.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def notify(self, recipient: str, category: str, message: str, link: str, actor: str) -> None:
        item = Notification(
            id=uuid.uuid4().hex[:16],
            recipient=recipient,
            category=category,
            message=message,
            link=link,
            actor=actor,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            data = self._load()
            data.append(asdict(item))
            self._save(data)

    def list_for(self, recipient: str, unread_only: bool = False) -> list[Notification]:
        """Return notifications for *recipient*, newest first."""
        items = [Notification(**d) for d in self._load() if d.get("recipient") == recipient]
        if unread_only:
            items = [n for n in items if not n.read]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items

    def unread_count(self, recipient: str) -> int:
        return len(self.list_for(recipient, unread_only=True))

    def mark_read(self, notification_id: str) -> bool:
        with self._lock:
            data = self._load()
            for d in data:
                if d.get("id") == notification_id:
                    d["read"] = True
                    self._save(data)
                    return True
        return False


# ------------------------------------------------------------------
# Webhook
# ------------------------------------------------------------------


class WebhookNotifier:
    """Deliver notifications to an HTTP endpoint.

    Raises on transport errors or non-2xx responses; wrap it in a
    :class:`DispatchingNotifier` to keep failures away from callers.
    """

    def __init__(self, url: str, secret: str = "", timeout: float = 10.0) -> None:
        self.url = url
        self.secret = secret
        self.timeout = timeout

    @staticmethod
    def compute_signature(payload_bytes: bytes, secret: str) -> str:
        mac = hmac.new(secret.encode("utf-8"), payload_bytes, hashlib.sha256)
        return f"sha256={mac.hexdigest()}"

    def build_request(
        self, recipient: str, category: str, message: str, link: str, actor: str
    ) -> urllib.request.Request:
        payload = {
            "recipient": recipient,
            "category": category,
            "message": message,
            "link": link,
            "actor": actor,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Forumguard-Event": category,
        }
        if self.secret:
            headers["X-Forumguard-Signature"] = self.compute_signature(body, self.secret)
        return urllib.request.Request(self.url, data=body, headers=headers, method="POST")

    def notify(self, recipient: str, category: str, message: str, link: str, actor: str) -> None:
        req = self.build_request(recipient, category, message, link, actor)
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            if not 200 <= resp.status < 300:
                raise RuntimeError(f"Webhook {self.url} answered {resp.status}")


# ------------------------------------------------------------------
# Fire-and-forget dispatch
# ------------------------------------------------------------------


class DispatchingNotifier:
    """Hand notifications to a worker pool and return immediately."""

    def __init__(self, sinks: Sequence[Notifier], max_workers: int = 2) -> None:
        self._sinks = list(sinks)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="forumguard-notify")

    def _deliver(self, sink: Notifier, args: tuple[str, str, str, str, str]) -> None:
        try:
            sink.notify(*args)
        except Exception:
            logger.exception("Notification to %s via %s failed", args[0], type(sink).__name__)

    def notify(self, recipient: str, category: str, message: str, link: str, actor: str) -> list[Future]:
        args = (recipient, category, message, link, actor)
        futures = []
        for sink in self._sinks:
            try:
                futures.append(self._pool.submit(self._deliver, sink, args))
            except RuntimeError:
                logger.exception("Notification dispatcher is shut down; dropping %s", category)
        return futures

    def close(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def safe_notify(
    notifier: Optional[Notifier], recipient: str, category: str, message: str, link: str, actor: str
) -> None:
    """Send a notification, logging and swallowing any failure."""
    if notifier is None:
        return
    try:
        notifier.notify(recipient, category, message, link, actor)
    except Exception:
        logger.exception("Failed to send %s notification to %s", category, recipient)
