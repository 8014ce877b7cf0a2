"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the chat client and notification
adapters so that the core can be driven by fakes in tests.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Protocol, Sequence

from core.models import AccountSnapshot, BannedRights, ChannelRef, UserSnapshot, Verdict


class SessionPort(Protocol):
    """Session lifecycle operations required by the supervisor."""

    async def start(self) -> None:
        ...

    async def get_self(self) -> AccountSnapshot:
        ...

    def set_event_handler(self, handler: Callable[[Any], Any]) -> None:
        ...

    async def loop(self) -> None:
        """Block until the session disconnects; raise on transport faults."""
        ...

    def serialize(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...


class ModerationClientPort(Protocol):
    """Moderation RPCs required by the processor and enforcement."""

    async def get_users(self, user_ids: Sequence[int]) -> List[UserSnapshot]:
        ...

    async def edit_banned(self, channel: ChannelRef, user_id: int, rights: BannedRights) -> None:
        ...

    async def delete_messages(self, channel: ChannelRef, message_ids: Sequence[int]) -> None:
        ...

    async def list_admined_channels(self) -> List[ChannelRef]:
        ...

    async def get_participants(self, channel: ChannelRef) -> List[UserSnapshot]:
        ...


class NotifierPort(Protocol):
    """Owner notifications. Implementations must never raise."""

    async def notify_ban(self, channel: ChannelRef, user: UserSnapshot, verdict: Verdict, dry_run: bool) -> None:
        ...

    async def notify_deletion(self, channel: ChannelRef, message_ids: Iterable[int], dry_run: bool) -> None:
        ...

    async def notify_status(self, message: str) -> None:
        ...
