"""Shared notification formatting helpers.

Keeping formatting here prevents drift between the audit log and the owner
chat. Messages are plain text, so no escaping is needed.
"""

from __future__ import annotations

from typing import Iterable

from core.models import ChannelRef, UserSnapshot, Verdict

DRY_RUN_TAG = "[dry run] "


def format_channel_label(channel: ChannelRef) -> str:
    """Return ``channel#<id>``, with the title when one is known."""

    if channel.title:
        return f"channel#{channel.id} ({channel.title})"
    return f"channel#{channel.id}"


def format_ban_notice(channel: ChannelRef, user: UserSnapshot, verdict: Verdict, dry_run: bool) -> str:
    """Audit message listing the user, the channel, and every reason."""

    prefix = DRY_RUN_TAG if dry_run else ""
    lines = [
        f"{prefix}Banning user#{user.id} ({user.display_username}) from {format_channel_label(channel)}",
        "Reason(s):",
    ]
    lines.extend(f" - {reason}" for reason in verdict.reasons)
    return "\n".join(lines)


def format_deletion_notice(channel: ChannelRef, message_ids: Iterable[int], dry_run: bool) -> str:
    prefix = DRY_RUN_TAG if dry_run else ""
    ids = ", ".join(str(message_id) for message_id in message_ids)
    return f"{prefix}Deleting messages from {format_channel_label(channel)}: {ids}"
