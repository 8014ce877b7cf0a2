"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Union

# Telethon surfaces these when the connection drops or reconnection gives up.
DEFAULT_TRANSIENT_PREFIXES: tuple[str, ...] = (
    "Automatic reconnection failed",
    "Connection to Telegram failed",
    "Server closed the connection",
    "Cannot send requests while disconnected",
    "Timeout while fetching data",
)
DEFAULT_TRANSIENT_SUBSTRINGS: tuple[str, ...] = (
    "timed out",
    "Connection reset by peer",
    "Network is unreachable",
    "Temporary failure in name resolution",
    "RPC_CALL_FAIL",
    "Connect call failed",
    "Connection refused",
)


@dataclass(frozen=True)
class EnforcementConfig:
    """Enforcement settings consumed by the ban/delete sequencing."""

    dry_run: bool = False
    delete_delay: int = 0
    abort_batch_on_error: bool = False


@dataclass(frozen=True)
class NotificationConfig:
    """Where owner notifications go and whether they are sent at all."""

    owner: Optional[Union[str, int]] = None
    notify_owner: bool = False


@dataclass(frozen=True)
class RetryPolicy:
    """Classifies session-loop exceptions as transient or fatal.

    An exception is transient when it is one of ``timeout_types`` (timeouts
    carry no message to match), or when it is one of ``exception_types`` and
    its message starts with one of ``transient_prefixes`` or contains one of
    ``transient_substrings``. Everything else is fatal.
    """

    transient_prefixes: tuple[str, ...] = DEFAULT_TRANSIENT_PREFIXES
    transient_substrings: tuple[str, ...] = DEFAULT_TRANSIENT_SUBSTRINGS
    exception_types: tuple[type, ...] = (OSError, asyncio.TimeoutError)
    timeout_types: tuple[type, ...] = (asyncio.TimeoutError,)

    def is_transient(self, error: BaseException) -> bool:
        if isinstance(error, self.timeout_types):
            return True
        if not isinstance(error, self.exception_types):
            return False
        message = str(error)
        if any(message.startswith(prefix) for prefix in self.transient_prefixes):
            return True
        return any(part in message for part in self.transient_substrings)


@dataclass(frozen=True)
class RestartPolicy:
    """Backoff between session restarts after transient faults.

    ``max_attempts`` counts consecutive failed attempts; ``None`` retries
    forever.
    """

    max_attempts: Optional[int] = None
    initial_delay: float = 1.0
    max_delay: float = 60.0
    factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retry number ``attempt`` (1-based)."""

        if attempt <= 0 or self.initial_delay <= 0:
            return 0.0
        return min(self.initial_delay * (self.factor ** (attempt - 1)), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt > self.max_attempts


@dataclass(frozen=True)
class BotConfig:
    """Everything loaded from config.json, validated."""

    session_file: str
    notification: NotificationConfig
    enforcement: EnforcementConfig
    retry: RetryPolicy
    restart: RestartPolicy
    test_fields: tuple[str, ...]
    bad_names: tuple[str, ...]
    bad_name_regexes: tuple[str, ...]
    scan_on_start: bool = False
    scan_chats: tuple[str, ...] = ()
    check_messages: bool = True
    logging: dict[str, Any] = field(default_factory=dict)
