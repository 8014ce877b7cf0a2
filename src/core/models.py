"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Union

# Key in a message id mapping whose ids are deleted regardless of author.
WILDCARD = ""

MessageIdSet = Mapping[Union[int, str], Iterable[int]]


@dataclass(frozen=True)
class UserSnapshot:
    """Display fields of one account, limited to the configured test fields."""

    id: int
    username: Optional[str] = None
    fields: Mapping[str, str] = field(default_factory=dict)

    @property
    def display_username(self) -> str:
        return f"@{self.username}" if self.username else "no username"


@dataclass(frozen=True)
class ChannelRef:
    """A managed group or channel as seen by the core."""

    id: int
    peer: Any
    title: Optional[str] = None


@dataclass(frozen=True)
class AccountSnapshot:
    """Identity of the account the session is logged in as."""

    id: int
    username: Optional[str]
    is_bot: bool


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating one user against the rule set."""

    bad: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class BannedRights:
    """Restriction set applied to a flagged user.

    Every interaction right is revoked and ``until_date = 0`` makes the ban
    permanent.
    """

    view_messages: bool = True
    send_messages: bool = True
    send_media: bool = True
    send_stickers: bool = True
    send_gifs: bool = True
    send_games: bool = True
    send_inline: bool = True
    embed_links: bool = True
    until_date: int = 0


PERMANENT_BAN = BannedRights()


def collect_message_ids(pending: Optional[MessageIdSet], user_id: int) -> List[int]:
    """Return the user's message ids merged with the wildcard ids.

    Duplicates are dropped; first-seen order is kept so deletions are logged
    in a stable order.
    """

    if not pending:
        return []
    merged: List[int] = []
    seen: set[int] = set()
    for key in (user_id, WILDCARD):
        for message_id in pending.get(key) or ():
            if message_id in seen:
                continue
            seen.add(message_id)
            merged.append(message_id)
    return merged
