"""Telethon event adapter feeding joins and messages into the processor.

Handlers stay thin: they filter stale updates, build the channel reference
and message id mapping, and defer every decision to ModerationProcessor.
"""

from __future__ import annotations

import logging

from telethon import events, utils

from adapters.telegram_mapper import is_update_recent
from core.models import WILDCARD, ChannelRef
from core.processor import ModerationProcessor

LOGGER = logging.getLogger(__name__)


async def _channel_from_event(event) -> ChannelRef:
    peer = await event.get_input_chat()
    channel_id, _ = utils.resolve_id(event.chat_id)
    return ChannelRef(id=channel_id, peer=peer, title=getattr(event.chat, "title", None))


class ModerationEventHandler:
    """Registers the join/leave and new-message handlers on a client."""

    def __init__(self, processor: ModerationProcessor, check_messages: bool = True) -> None:
        self._processor = processor
        self._check_messages = check_messages

    def register(self, client) -> None:
        client.add_event_handler(self.on_chat_action, events.ChatAction())
        if self._check_messages:
            client.add_event_handler(self.on_new_message, events.NewMessage(incoming=True))

    async def on_chat_action(self, event) -> None:
        # Leavers are checked too, so the "left" notice of a flagged user goes away.
        # Kicks are skipped: our own bans show up as kick notices.
        if not (event.user_joined or event.user_added or event.user_left):
            return
        message = event.action_message
        if message is None or not is_update_recent(message.date):
            return
        try:
            channel = await _channel_from_event(event)
            await self._processor.check_users_by_ids(channel, list(event.user_ids or []), {WILDCARD: [message.id]})
        except Exception:
            LOGGER.exception("Error while processing chat action")

    async def on_new_message(self, event) -> None:
        if not event.is_group:
            return
        sender_id = event.sender_id
        # Anonymous admins and linked channels post with a negative peer id.
        if sender_id is None or sender_id < 0:
            return
        if not is_update_recent(event.message.date):
            return
        try:
            channel = await _channel_from_event(event)
            await self._processor.check_users_by_ids(channel, [sender_id], {sender_id: [event.message.id]})
        except Exception:
            LOGGER.exception("Error while processing message")
