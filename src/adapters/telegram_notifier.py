"""Telegram notification adapter for the owner chat.

Every notification is logged; when owner notifications are enabled it is
also sent to the owner through the bot session.
"""

from __future__ import annotations

import logging
from typing import Iterable

from adapters.notification_formatting import format_ban_notice, format_deletion_notice
from core.config import NotificationConfig
from core.models import ChannelRef, UserSnapshot, Verdict

LOGGER = logging.getLogger(__name__)


class OwnerNotifier:
    """Notifier adapter that messages the configured owner. Never raises."""

    def __init__(self, client, config: NotificationConfig) -> None:
        self._client = client
        self._owner = config.owner
        self._enabled = config.notify_owner and bool(config.owner)

    async def notify_ban(self, channel: ChannelRef, user: UserSnapshot, verdict: Verdict, dry_run: bool) -> None:
        await self._send(format_ban_notice(channel, user, verdict, dry_run))

    async def notify_deletion(self, channel: ChannelRef, message_ids: Iterable[int], dry_run: bool) -> None:
        await self._send(format_deletion_notice(channel, message_ids, dry_run))

    async def notify_status(self, message: str) -> None:
        await self._send(message)

    async def _send(self, message: str) -> None:
        LOGGER.info("NOTIFY: %s", message)
        if not self._enabled:
            return
        try:
            await self._client.send_message(self._owner, message, link_preview=False)
        except Exception:
            LOGGER.exception("Failed to notify owner %s", self._owner)
