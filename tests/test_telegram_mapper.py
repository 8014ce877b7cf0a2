from __future__ import annotations

from datetime import datetime, timedelta, timezone

from adapters.telegram_mapper import (
    build_user_snapshot,
    has_moderation_rights,
    is_update_recent,
    to_chat_banned_rights,
)
from core.models import PERMANENT_BAN


class DummyUser:
    def __init__(self, user_id: int, first_name=None, last_name=None, username=None, phone=None) -> None:
        self.id = user_id
        self.first_name = first_name
        self.last_name = last_name
        self.username = username
        self.phone = phone


class DummyRights:
    def __init__(self, ban_users: bool, delete_messages: bool) -> None:
        self.ban_users = ban_users
        self.delete_messages = delete_messages


class DummyChannel:
    def __init__(self, rights=None, creator: bool = False) -> None:
        self.admin_rights = rights
        self.creator = creator


def test_snapshot_keeps_only_configured_present_fields() -> None:
    user = DummyUser(9, first_name="Ann", last_name=None, username="ann", phone="123")

    snapshot = build_user_snapshot(user, ["first_name", "last_name", "username", "about"], about="hi there")

    assert snapshot.id == 9
    assert snapshot.username == "ann"
    assert dict(snapshot.fields) == {"first_name": "Ann", "username": "ann", "about": "hi there"}


def test_snapshot_username_is_kept_even_when_not_tested() -> None:
    snapshot = build_user_snapshot(DummyUser(9, first_name="Ann", username="ann"), ["first_name"])

    assert snapshot.username == "ann"
    assert dict(snapshot.fields) == {"first_name": "Ann"}


def test_moderation_rights_require_ban_and_delete() -> None:
    assert has_moderation_rights(DummyChannel(DummyRights(True, True)))
    assert not has_moderation_rights(DummyChannel(DummyRights(True, False)))
    assert not has_moderation_rights(DummyChannel(None))
    assert has_moderation_rights(DummyChannel(None, creator=True))


def test_permanent_ban_maps_to_forever() -> None:
    rights = to_chat_banned_rights(PERMANENT_BAN)

    assert rights.until_date is None
    assert rights.view_messages and rights.send_messages and rights.send_media
    assert rights.send_stickers and rights.send_gifs and rights.send_games
    assert rights.send_inline and rights.embed_links


def test_update_freshness_window() -> None:
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    assert is_update_recent(now - timedelta(seconds=30), now)
    assert is_update_recent(now + timedelta(seconds=5), now)
    assert not is_update_recent(now - timedelta(seconds=61), now)
    assert not is_update_recent(now + timedelta(seconds=6), now)
    assert not is_update_recent(None, now)
