from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from adapters.event_handler import ModerationEventHandler
from core.models import WILDCARD


class FakeProcessor:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[int, list[int], dict]] = []

    async def check_users_by_ids(self, channel, user_ids, message_ids=None):
        if self.fail:
            raise RuntimeError("USER_ID_INVALID")
        self.calls.append((channel.id, list(user_ids), dict(message_ids or {})))
        return []


class DummyMessage:
    def __init__(self, message_id: int, age_seconds: int = 0) -> None:
        self.id = message_id
        self.date = datetime.now(timezone.utc) - timedelta(seconds=age_seconds)


class DummyChat:
    title = "Lobby"


class DummyChatAction:
    def __init__(self, *, joined=False, added=False, left=False, kicked=False, user_ids=(), message=None) -> None:
        self.user_joined = joined
        self.user_added = added
        self.user_left = left
        self.user_kicked = kicked
        self.user_ids = list(user_ids)
        self.action_message = message
        self.chat_id = -1001234567890
        self.chat = DummyChat()

    async def get_input_chat(self):
        return "input-peer"


class DummyNewMessage:
    def __init__(self, sender_id, message, is_group=True) -> None:
        self.sender_id = sender_id
        self.message = message
        self.is_group = is_group
        self.chat_id = -1001234567890
        self.chat = DummyChat()

    async def get_input_chat(self):
        return "input-peer"


def test_join_checks_added_users_with_wildcard_notice() -> None:
    processor = FakeProcessor()
    handler = ModerationEventHandler(processor)

    asyncio.run(handler.on_chat_action(DummyChatAction(added=True, user_ids=[5, 6], message=DummyMessage(77))))

    assert processor.calls == [(1234567890, [5, 6], {WILDCARD: [77]})]


def test_stale_and_unrelated_actions_are_ignored() -> None:
    processor = FakeProcessor()
    handler = ModerationEventHandler(processor)

    asyncio.run(handler.on_chat_action(DummyChatAction(joined=True, user_ids=[5], message=DummyMessage(1, 600))))
    asyncio.run(handler.on_chat_action(DummyChatAction(user_ids=[5], message=DummyMessage(2))))

    assert processor.calls == []


def test_new_message_is_keyed_by_sender() -> None:
    processor = FakeProcessor()
    handler = ModerationEventHandler(processor)

    asyncio.run(handler.on_new_message(DummyNewMessage(5, DummyMessage(90))))
    asyncio.run(handler.on_new_message(DummyNewMessage(-100999, DummyMessage(91))))
    asyncio.run(handler.on_new_message(DummyNewMessage(5, DummyMessage(92), is_group=False)))

    assert processor.calls == [(1234567890, [5], {5: [90]})]


def test_handler_errors_are_logged_not_raised() -> None:
    handler = ModerationEventHandler(FakeProcessor(fail=True))

    asyncio.run(handler.on_chat_action(DummyChatAction(left=True, user_ids=[5], message=DummyMessage(3))))


def test_kick_notices_are_not_rechecked() -> None:
    processor = FakeProcessor()
    handler = ModerationEventHandler(processor)

    asyncio.run(handler.on_chat_action(DummyChatAction(kicked=True, user_ids=[5], message=DummyMessage(4))))

    assert processor.calls == []
