"""Session supervision: start, block on the session loop, restart on transient faults.

Each attempt yields a tagged outcome instead of letting exceptions steer the
control flow:

- ``CleanExit``: the loop returned (or a shutdown was requested).
- ``TransientFault``: classified as recoverable by the retry policy.
- ``FatalFault``: anything else; the caller shuts the process down.

Transient faults are not reported when they happen, because the owner chat is
usually unreachable at that moment. They are reported once, in a single
notification, after the next successful start.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Union

from core.config import RestartPolicy, RetryPolicy
from core.errors import NotABotError
from core.models import AccountSnapshot
from core.ports import NotifierPort, SessionPort

LOGGER = logging.getLogger(__name__)

ONLINE_MESSAGE = "Bot online."


class SupervisorState(enum.Enum):
    STARTING = "starting"
    RUNNING = "running"
    RESTARTING = "restarting"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class CleanExit:
    pass


@dataclass(frozen=True)
class TransientFault:
    reason: str
    error: BaseException = field(compare=False)


@dataclass(frozen=True)
class FatalFault:
    error: BaseException


Outcome = Union[CleanExit, TransientFault, FatalFault]


def describe_error(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"


def format_restart_message(reasons: List[str]) -> str:
    if len(reasons) == 1:
        return f"Bot restarted due to: {reasons[0]}"
    lines = [f"Bot restarted after {len(reasons)} transient faults:"]
    lines.extend(f" - {reason}" for reason in reasons)
    return "\n".join(lines)


class SessionSupervisor:
    """Keeps the session loop alive across transient faults."""

    def __init__(
        self,
        session: SessionPort,
        notifier: NotifierPort,
        retry_policy: RetryPolicy,
        restart_policy: RestartPolicy,
        stop_requested: Optional[asyncio.Event] = None,
        event_handler: Optional[Callable[[Any], Any]] = None,
        on_ready: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._retry = retry_policy
        self._restart = restart_policy
        self._stop_requested = stop_requested or asyncio.Event()
        self._event_handler = event_handler
        self._on_ready = on_ready
        self._handler_registered = False
        self._reached_running = False
        self._pending_faults: List[str] = []
        self.state = SupervisorState.STARTING
        self.me: Optional[AccountSnapshot] = None

    @property
    def pending_faults(self) -> List[str]:
        return list(self._pending_faults)

    async def run(self) -> Outcome:
        """Run attempts until a clean exit, a fatal fault, or exhausted retries."""

        failures = 0
        try:
            while True:
                outcome = await self.run_once()
                if not isinstance(outcome, TransientFault):
                    return outcome

                failures = 1 if self._reached_running else failures + 1
                self._pending_faults.append(outcome.reason)
                if self._restart.exhausted(failures):
                    LOGGER.error("Giving up after %s consecutive transient faults", failures)
                    return FatalFault(outcome.error)

                self.state = SupervisorState.RESTARTING
                delay = self._restart.delay_for(failures)
                LOGGER.warning("Restarting session in %.1fs (attempt %s): %s", delay, failures, outcome.reason)
                if await self._wait_or_stop(delay):
                    self.state = SupervisorState.SHUTTING_DOWN
                    return CleanExit()
        finally:
            self.state = SupervisorState.TERMINATED

    async def run_once(self) -> Outcome:
        """Start the session and block on its loop once."""

        self._reached_running = False
        if self._stop_requested.is_set():
            return CleanExit()
        self.state = SupervisorState.STARTING
        try:
            await self._start()
            await self._session.loop()
        except Exception as exc:
            if self._stop_requested.is_set():
                LOGGER.info("Session ended during shutdown: %s", describe_error(exc))
                self.state = SupervisorState.SHUTTING_DOWN
                return CleanExit()
            if self._retry.is_transient(exc):
                LOGGER.warning("Transient session fault: %s", describe_error(exc))
                return TransientFault(reason=describe_error(exc), error=exc)
            LOGGER.exception("Fatal exception in session loop")
            return FatalFault(exc)

        LOGGER.info("Exited loop cleanly.")
        self.state = SupervisorState.SHUTTING_DOWN
        return CleanExit()

    async def _start(self) -> None:
        await self._session.start()
        me = await self._session.get_self()
        if not me.is_bot:
            raise NotABotError("Must be run as a bot.")
        self.me = me

        if self._event_handler is not None and not self._handler_registered:
            self._session.set_event_handler(self._event_handler)
            self._handler_registered = True

        self.state = SupervisorState.RUNNING
        self._reached_running = True
        await self._announce()
        if self._on_ready is not None:
            await self._on_ready()

    async def _announce(self) -> None:
        if self._pending_faults:
            message = format_restart_message(self._pending_faults)
            self._pending_faults.clear()
            await self._notifier.notify_status(message)
        await self._notifier.notify_status(ONLINE_MESSAGE)

    async def _wait_or_stop(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds; return True if shutdown was requested."""

        if delay > 0:
            try:
                await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        return self._stop_requested.is_set()
