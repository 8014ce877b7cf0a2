"""Ban and delete sequencing for flagged users."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from core.config import EnforcementConfig
from core.models import PERMANENT_BAN, ChannelRef, MessageIdSet, UserSnapshot, Verdict, collect_message_ids
from core.ports import ModerationClientPort, NotifierPort

LOGGER = logging.getLogger(__name__)


class EnforcementAction:
    """Applies a bad verdict: notify, ban, then delete the related messages.

    Dry-run runs every decision and notification but skips the two mutating
    calls (ban and delete).
    """

    def __init__(
        self,
        client: ModerationClientPort,
        notifier: NotifierPort,
        config: EnforcementConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._config = config
        self._sleep = sleep

    async def apply(
        self,
        channel: ChannelRef,
        user: UserSnapshot,
        verdict: Verdict,
        pending_message_ids: Optional[MessageIdSet] = None,
    ) -> None:
        if not verdict.bad:
            return

        dry_run = self._config.dry_run
        await self._notifier.notify_ban(channel, user, verdict, dry_run)

        if dry_run:
            LOGGER.info("Dry run: not banning user#%s in channel#%s", user.id, channel.id)
        else:
            await self._client.edit_banned(channel, user.id, PERMANENT_BAN)
            LOGGER.info("Banned user#%s in channel#%s", user.id, channel.id)

        message_ids = collect_message_ids(pending_message_ids, user.id)
        if not message_ids:
            return

        # Give the join notice time to render before it disappears.
        if self._config.delete_delay > 0:
            await self._sleep(self._config.delete_delay)

        await self._notifier.notify_deletion(channel, message_ids, dry_run)
        if dry_run:
            return
        await self._client.delete_messages(channel, message_ids)
        LOGGER.info("Deleted %s message(s) in channel#%s", len(message_ids), channel.id)
