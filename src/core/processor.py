"""Core moderation pipeline.

This module is integration-agnostic. It only relies on ports for the chat
client and notifications, so the event adapter and the startup sweep share
one code path.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from core.config import EnforcementConfig
from core.enforcement import EnforcementAction
from core.errors import EnforcementError
from core.models import WILDCARD, ChannelRef, MessageIdSet, UserSnapshot, Verdict
from core.ports import ModerationClientPort
from core.rules_engine import RuleSet, evaluate

LOGGER = logging.getLogger(__name__)


def _without_ids(message_ids: Optional[MessageIdSet], handled: set[int]) -> Optional[MessageIdSet]:
    """Drop wildcard ids already deleted earlier in the batch."""

    if not message_ids or not handled:
        return message_ids
    remaining = dict(message_ids)
    remaining[WILDCARD] = [message_id for message_id in message_ids.get(WILDCARD) or () if message_id not in handled]
    return remaining


class ModerationProcessor:
    """Orchestrates evaluation and enforcement for batches of users."""

    def __init__(
        self,
        rules: RuleSet,
        test_fields: Sequence[str],
        client: ModerationClientPort,
        enforcement: EnforcementAction,
        config: EnforcementConfig,
    ) -> None:
        self._rules = rules
        self._test_fields = tuple(test_fields)
        self._client = client
        self._enforcement = enforcement
        self._abort_on_error = config.abort_batch_on_error

    async def check_users_by_ids(
        self,
        channel: ChannelRef,
        user_ids: Sequence[int],
        message_ids: Optional[MessageIdSet] = None,
    ) -> List[Tuple[UserSnapshot, Verdict]]:
        """Look the users up in one batch and check them."""

        if not user_ids:
            return []
        users = await self._client.get_users(list(user_ids))
        return await self.check_users(channel, users, message_ids)

    async def check_users(
        self,
        channel: ChannelRef,
        users: Iterable[UserSnapshot],
        message_ids: Optional[MessageIdSet] = None,
    ) -> List[Tuple[UserSnapshot, Verdict]]:
        """Evaluate each user and enforce on the bad ones.

        Returns the flagged users with their verdicts. Wildcard ids (the join
        notice) are deleted once per batch, not once per flagged user. A failed
        ban or delete is logged and the batch continues, unless
        abort_batch_on_error is set, in which case EnforcementError stops the
        batch.
        """

        flagged: List[Tuple[UserSnapshot, Verdict]] = []
        deleted_wildcard: set[int] = set()
        for user in users:
            verdict = evaluate(user, self._rules, self._test_fields)
            if not verdict.bad:
                continue
            flagged.append((user, verdict))
            LOGGER.info("Flagged user#%s in channel#%s (%s reason(s))", user.id, channel.id, len(verdict.reasons))
            try:
                await self._enforcement.apply(channel, user, verdict, _without_ids(message_ids, deleted_wildcard))
            except Exception as exc:
                if self._abort_on_error:
                    raise EnforcementError(user.id, channel.id, exc) from exc
                LOGGER.exception("Enforcement failed for user#%s in channel#%s", user.id, channel.id)
                continue
            if message_ids:
                deleted_wildcard.update(message_ids.get(WILDCARD) or ())
        return flagged

    async def scan_channels(self, channels: Iterable[ChannelRef]) -> int:
        """Check every participant of the given channels; return flagged count."""

        flagged = 0
        for channel in channels:
            try:
                participants = await self._client.get_participants(channel)
            except Exception:
                LOGGER.exception("Failed to list participants of channel#%s during scan", channel.id)
                continue
            try:
                results = await self.check_users(channel, participants)
            except EnforcementError:
                LOGGER.exception("Scan of channel#%s aborted", channel.id)
                continue
            flagged += len(results)
            LOGGER.info("Scanned channel#%s: users=%s, flagged=%s", channel.id, len(participants), len(results))
        return flagged
