"""Settings for a forumguard installation.

Settings come from an optional YAML file and are then overridden by
``FORUMGUARD_*`` environment variables::

    base_dir: /var/lib/forumguard
    flag_threshold: 3
    delete_threshold: 10
    rules_path: /etc/forumguard/rules.yaml
    rules_extend: true
    webhook_url: https://hooks.example.org/forum
    webhook_secret: s3cret
    notify_workers: 2
    log_level: INFO
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from forumguard.errors import ValidationError

DEFAULT_CONFIG_PATH = Path.home() / ".forumguard" / "config.yaml"

_ENV_OVERRIDES: dict[str, str] = {
    "FORUMGUARD_HOME": "base_dir",
    "FORUMGUARD_FLAG_THRESHOLD": "flag_threshold",
    "FORUMGUARD_DELETE_THRESHOLD": "delete_threshold",
    "FORUMGUARD_RULES": "rules_path",
    "FORUMGUARD_WEBHOOK_URL": "webhook_url",
    "FORUMGUARD_WEBHOOK_SECRET": "webhook_secret",
    "FORUMGUARD_LOG_LEVEL": "log_level",
}

_INT_FIELDS = {"flag_threshold", "delete_threshold", "notify_workers"}


@dataclass
class Settings:
    base_dir: str = str(Path.home() / ".forumguard")
    flag_threshold: int = 3
    delete_threshold: int = 10
    rules_path: Optional[str] = None
    rules_extend: bool = True
    webhook_url: str = ""
    webhook_secret: str = ""
    notify_workers: int = 2
    log_level: str = "INFO"

    def validate(self) -> Settings:
        if not 1 <= self.flag_threshold < self.delete_threshold:
            raise ValidationError(
                "flag_threshold must be at least 1 and below delete_threshold "
                f"(got {self.flag_threshold} and {self.delete_threshold})"
            )
        if self.notify_workers < 1:
            raise ValidationError("notify_workers must be at least 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValidationError(f"Unknown log level: {self.log_level}")
        return self


def _coerce(name: str, value: Any) -> Any:
    if name in _INT_FIELDS:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{name} must be an integer (got {value!r})") from exc
    if name == "rules_extend" and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return value


def load_settings(path: str | Path | None = None, env: Optional[dict[str, str]] = None) -> Settings:
    """Load settings from *path* (if it exists) and the environment."""
    env = os.environ if env is None else env
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValidationError(f"Config file {config_path} must contain a mapping")
    elif path:
        raise ValidationError(f"Config file not found: {config_path}")

    known = {f.name for f in fields(Settings)}
    unknown = set(data) - known
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

    values = {k: _coerce(k, v) for k, v in data.items()}
    for var, name in _ENV_OVERRIDES.items():
        if env.get(var):
            values[name] = _coerce(name, env[var])

    return Settings(**values).validate()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command line use."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
