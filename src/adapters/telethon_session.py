"""Telethon adapters for the session and moderation ports.

These are the only classes that talk to TelegramClient directly; the core
sees AccountSnapshot, UserSnapshot and ChannelRef instead of TL objects.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Sequence

from telethon import TelegramClient, errors, functions, types, utils

from adapters.telegram_mapper import build_channel_ref, build_user_snapshot, has_moderation_rights, to_chat_banned_rights
from core.models import AccountSnapshot, BannedRights, ChannelRef, UserSnapshot

LOGGER = logging.getLogger(__name__)

# Exception kinds the retry policy may treat as transient.
TRANSIENT_EXCEPTION_TYPES: tuple[type, ...] = (OSError, asyncio.TimeoutError, errors.RPCError)


class TelethonSession:
    """SessionPort backed by a bot-token TelegramClient."""

    def __init__(self, client: TelegramClient, bot_token: str) -> None:
        self._client = client
        self._bot_token = bot_token

    async def start(self) -> None:
        LOGGER.info("Starting Telegram session")
        await self._client.start(bot_token=self._bot_token)

    async def get_self(self) -> AccountSnapshot:
        me = await self._client.get_me()
        return AccountSnapshot(id=me.id, username=getattr(me, "username", None), is_bot=bool(getattr(me, "bot", False)))

    def set_event_handler(self, handler: Any) -> None:
        handler.register(self._client)

    async def loop(self) -> None:
        await self._client.run_until_disconnected()

    def serialize(self) -> None:
        self._client.session.save()

    async def disconnect(self) -> None:
        if self._client.is_connected():
            await self._client.disconnect()


def _parse_chat_key(key: str) -> Any:
    """Config chat keys are @usernames or numeric (marked) chat ids."""

    stripped = key.strip()
    try:
        return int(stripped)
    except ValueError:
        return stripped


class TelethonModerationClient:
    """ModerationClientPort implemented with Telethon requests."""

    def __init__(self, client: TelegramClient, test_fields: Iterable[str], scan_chats: Iterable[str] = ()) -> None:
        self._client = client
        self._test_fields = tuple(test_fields)
        self._fetch_about = "about" in self._test_fields
        self._scan_chats = tuple(scan_chats)

    async def get_users(self, user_ids: Sequence[int]) -> List[UserSnapshot]:
        entities = await self._client.get_entity(list(user_ids))
        return [await self._snapshot(entity) for entity in entities if isinstance(entity, types.User)]

    async def edit_banned(self, channel: ChannelRef, user_id: int, rights: BannedRights) -> None:
        await self._client(
            functions.channels.EditBannedRequest(
                channel=channel.peer,
                participant=user_id,
                banned_rights=to_chat_banned_rights(rights),
            )
        )

    async def delete_messages(self, channel: ChannelRef, message_ids: Sequence[int]) -> None:
        await self._client.delete_messages(channel.peer, list(message_ids))

    async def list_admined_channels(self) -> List[ChannelRef]:
        """Resolve configured scan chats and keep those we can moderate."""

        channels: List[ChannelRef] = []
        for key in self._scan_chats:
            try:
                entity = await self._client.get_entity(_parse_chat_key(key))
            except (ValueError, errors.RPCError):
                LOGGER.exception("Failed to resolve scan chat %s", key)
                continue
            if not isinstance(entity, types.Channel):
                LOGGER.warning("Scan chat %s is not a supergroup or channel; skipping", key)
                continue
            if not has_moderation_rights(entity):
                LOGGER.warning("Missing ban/delete rights in %s; skipping", key)
                continue
            channels.append(build_channel_ref(entity, utils.get_input_peer(entity)))
        return channels

    async def get_participants(self, channel: ChannelRef) -> List[UserSnapshot]:
        participants = await self._client.get_participants(channel.peer)
        return [await self._snapshot(user) for user in participants if not getattr(user, "bot", False)]

    async def _snapshot(self, user: types.User) -> UserSnapshot:
        about = None
        if self._fetch_about:
            try:
                full = await self._client(functions.users.GetFullUserRequest(user))
                about = full.full_user.about
            except errors.RPCError:
                LOGGER.warning("Could not fetch bio for user#%s", user.id, exc_info=True)
        return build_user_snapshot(user, self._test_fields, about)
