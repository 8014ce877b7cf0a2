"""Exception types raised by the core and the app layer."""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for all gatekeeper errors."""


class ConfigError(GatekeeperError):
    """Raised when config.json is missing, malformed, or inconsistent."""


class NotABotError(GatekeeperError):
    """Raised at startup when the session is not logged in as a bot."""


class EnforcementError(GatekeeperError):
    """Raised when a ban or delete fails and the batch must be abandoned."""

    def __init__(self, user_id: int, channel_id: int, cause: BaseException) -> None:
        super().__init__(f"Enforcement failed for user#{user_id} in channel#{channel_id}: {cause}")
        self.user_id = user_id
        self.channel_id = channel_id
        self.cause = cause
