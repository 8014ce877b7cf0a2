"""Process lifecycle: signal handling, forced saves, and one-shot shutdown.

Signal handlers never run shutdown logic themselves. They record the request
(stop event + requested save mode) and disconnect the session, so the
blocking session loop returns and the main path performs the shutdown at a
safe point.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Callable, Coroutine, Optional

from core.ports import NotifierPort, SessionPort

LOGGER = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Bot is shutting down."

# SIGHUP/SIGQUIT/SIGUSR1 only exist on POSIX.
HANDLED_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGHUP", "SIGQUIT", "SIGUSR1")
    if hasattr(signal, name)
)


class LifecycleManager:
    """Owns save/shutdown side effects and guarantees they run at most once."""

    def __init__(
        self,
        session: SessionPort,
        notifier: NotifierPort,
        terminate: Callable[[int], None] = sys.exit,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._terminate = terminate
        self._shutting_down = False
        self._installed = False
        self._requested_save = True
        self._stop_requested = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def stop_requested(self) -> asyncio.Event:
        return self._stop_requested

    @property
    def requested_save(self) -> bool:
        """Save mode asked for by the first shutdown request."""

        return self._requested_save

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Attach handlers for every supported signal; safe to call repeatedly."""

        if self._installed:
            return
        loop = loop or asyncio.get_running_loop()
        for signo in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(signo, self.on_signal, signo)
            except (NotImplementedError, RuntimeError, ValueError):
                LOGGER.warning("Failed to attach signal handler for %s", signo.name)
        self._installed = True

    def on_signal(self, signo: int) -> None:
        LOGGER.info("Caught signal: %s", signal.Signals(signo).name)
        if signo == getattr(signal, "SIGUSR1", None):
            self.save()
        elif signo == getattr(signal, "SIGQUIT", None):
            self.request_shutdown(save=False)
        else:
            self.request_shutdown(save=True)

    def request_shutdown(self, save: bool = True) -> None:
        """Ask the main path to shut down; only the first request counts."""

        if self._stop_requested.is_set():
            return
        self._requested_save = save
        self._stop_requested.set()
        self._spawn(self._disconnect_quietly())

    def save(self) -> bool:
        """Persist the session. Failures are logged, never raised."""

        LOGGER.info("Forcing save...")
        try:
            self._session.serialize()
        except Exception:
            LOGGER.exception("Error forcing save")
            return False
        LOGGER.info("Done with forced save.")
        return True

    async def shutdown(self, save: bool = True, exit_code: int = 0) -> bool:
        """Save, notify, disconnect, then terminate the process.

        The flag is checked and set before the first await, so a second
        caller (main path or signal) returns False without side effects.
        """

        if self._shutting_down:
            LOGGER.debug("Shutdown already in progress")
            return False
        self._shutting_down = True
        self._stop_requested.set()

        if save:
            LOGGER.info("Performing final save before shutting down...")
            self.save()

        try:
            await self._notifier.notify_status(SHUTDOWN_MESSAGE)
        except Exception:
            LOGGER.exception("Failed to send shutdown notification")

        await self._disconnect_quietly()
        LOGGER.info("Shutdown complete (exit code %s)", exit_code)
        self._terminate(exit_code)
        return True

    async def _disconnect_quietly(self) -> None:
        try:
            await self._session.disconnect()
        except Exception:
            LOGGER.exception("Error while disconnecting session")

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
