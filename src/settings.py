"""Static configuration for gatekeeper.

All user-editable settings (rules, enforcement, notifications, retries) live
in a single JSON file for quick edits without touching Python. Secrets stay
in the environment (see client.py).
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

from adapters.telegram_mapper import SUPPORTED_FIELDS
from core.config import (
    DEFAULT_TRANSIENT_PREFIXES,
    DEFAULT_TRANSIENT_SUBSTRINGS,
    BotConfig,
    EnforcementConfig,
    NotificationConfig,
    RestartPolicy,
    RetryPolicy,
)
from core.errors import ConfigError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# GATEKEEPER_CONFIG overrides the default location.
CONFIG_PATH = os.getenv("GATEKEEPER_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))

DEFAULT_TEST_FIELDS = ("first_name", "last_name", "username")


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def _string_list(raw: dict, key: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    value = raw.get(key, list(default))
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return tuple(value)


def _bool(raw: dict, key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false")
    return value


def _number(raw: dict, key: str, default: Optional[float], minimum: float = 0) -> Optional[float]:
    value = raw.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
        raise ConfigError(f"'{key}' must be a number >= {minimum}")
    return value


def _whole_seconds(raw: dict, key: str, default: int) -> int:
    value = _number(raw, key, default)
    if value is None:
        return default
    if value != int(value):
        raise ConfigError(f"'{key}' must be a whole number of seconds")
    return int(value)


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be an object")
    return value


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def parse_config(raw: dict[str, Any]) -> BotConfig:
    """Validate a decoded config.json and build the typed BotConfig."""

    test_fields = _string_list(raw, "test_fields", DEFAULT_TEST_FIELDS)
    unknown = [name for name in test_fields if name not in SUPPORTED_FIELDS]
    if unknown:
        raise ConfigError(f"Unsupported test_fields: {', '.join(unknown)} (supported: {', '.join(SUPPORTED_FIELDS)})")

    owner = raw.get("owner")
    if owner is not None and not isinstance(owner, (str, int)):
        raise ConfigError("'owner' must be a @username or a numeric chat id")
    notify_owner = _bool(raw, "notify_owner", False)
    if notify_owner and not owner:
        raise ConfigError("'owner' is required when notify_owner is true")

    enforcement = _section(raw, "enforcement")
    retry = _section(raw, "retry")
    max_attempts = _number(retry, "max_attempts", None, minimum=1)

    return BotConfig(
        session_file=_resolve_path(str(raw.get("session_file", "gatekeeper.session"))),
        notification=NotificationConfig(owner=owner, notify_owner=notify_owner),
        enforcement=EnforcementConfig(
            dry_run=_bool(raw, "dry_run", False),
            delete_delay=_whole_seconds(raw, "delete_delay", 0),
            abort_batch_on_error=_bool(enforcement, "abort_batch_on_error", False),
        ),
        retry=RetryPolicy(
            transient_prefixes=_string_list(retry, "transient_prefixes", DEFAULT_TRANSIENT_PREFIXES),
            transient_substrings=_string_list(retry, "transient_substrings", DEFAULT_TRANSIENT_SUBSTRINGS),
        ),
        restart=RestartPolicy(
            max_attempts=int(max_attempts) if max_attempts is not None else None,
            initial_delay=float(_number(retry, "initial_delay", 1.0) or 0),
            max_delay=float(_number(retry, "max_delay", 60.0) or 0),
        ),
        test_fields=test_fields,
        bad_names=_string_list(raw, "bad_names"),
        bad_name_regexes=_string_list(raw, "bad_name_regexes"),
        scan_on_start=_bool(raw, "scan_on_start", False),
        scan_chats=_string_list(raw, "scan_chats"),
        check_messages=_bool(raw, "check_messages", True),
        logging=_section(raw, "logging"),
    )


def load_config(path: str = CONFIG_PATH) -> BotConfig:
    return parse_config(_load_json_config(path))
