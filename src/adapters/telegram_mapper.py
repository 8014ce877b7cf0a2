"""Telegram-to-core mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Iterable, Optional

from telethon.tl.types import ChatBannedRights

from core.models import BannedRights, ChannelRef, UserSnapshot

LOGGER = logging.getLogger(__name__)

SUPPORTED_FIELDS = ("first_name", "last_name", "username", "phone", "about")

# Updates outside this window (seconds relative to now) are stale or bogus.
RECENT_THRESHOLD = -60
FUTURE_THRESHOLD = 5


def build_user_snapshot(user: Any, test_fields: Iterable[str], about: Optional[str] = None) -> UserSnapshot:
    """Build a core UserSnapshot holding only the configured test fields."""

    values = {
        "first_name": getattr(user, "first_name", None),
        "last_name": getattr(user, "last_name", None),
        "username": getattr(user, "username", None),
        "phone": getattr(user, "phone", None),
        "about": about,
    }
    fields = {name: values[name] for name in test_fields if values.get(name) is not None}
    return UserSnapshot(id=user.id, username=values["username"], fields=fields)


def build_channel_ref(entity: Any, peer: Any = None) -> ChannelRef:
    """Build a ChannelRef from a Telethon Channel entity."""

    return ChannelRef(id=entity.id, peer=peer if peer is not None else entity, title=getattr(entity, "title", None))


def has_moderation_rights(entity: Any) -> bool:
    """True when the bot may both ban users and delete messages in the chat."""

    if getattr(entity, "creator", False):
        return True
    rights = getattr(entity, "admin_rights", None)
    if rights is None:
        return False
    return bool(getattr(rights, "ban_users", False) and getattr(rights, "delete_messages", False))


def to_chat_banned_rights(rights: BannedRights) -> ChatBannedRights:
    """Translate the core restriction set; until_date 0 means forever."""

    return ChatBannedRights(
        until_date=None if not rights.until_date else datetime.fromtimestamp(rights.until_date, tz=timezone.utc),
        view_messages=rights.view_messages,
        send_messages=rights.send_messages,
        send_media=rights.send_media,
        send_stickers=rights.send_stickers,
        send_gifs=rights.send_gifs,
        send_games=rights.send_games,
        send_inline=rights.send_inline,
        embed_links=rights.embed_links,
    )


def is_update_recent(date: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Return False for updates from the distant past or from the future."""

    if date is None:
        return False
    now = now or datetime.now(timezone.utc)
    delta = (date - now).total_seconds()
    if delta > FUTURE_THRESHOLD:
        LOGGER.warning("Update from the future. Timestamp: %s; Now: %s; Delta: %.0f", date, now, delta)
        return False
    if delta < RECENT_THRESHOLD:
        LOGGER.warning("Update from the past. Timestamp: %s; Now: %s; Delta: %.0f", date, now, delta)
        return False
    return True
