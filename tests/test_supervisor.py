from __future__ import annotations

import asyncio

from fakes import FakeModerationClient, FakeNotifier, FakeSession, make_channel

from core.config import EnforcementConfig, RestartPolicy, RetryPolicy
from core.enforcement import EnforcementAction
from core.errors import NotABotError
from core.models import UserSnapshot
from core.processor import ModerationProcessor
from core.rules_engine import build_rule_set
from core.supervisor import (
    ONLINE_MESSAGE,
    CleanExit,
    FatalFault,
    SessionSupervisor,
    SupervisorState,
    TransientFault,
    format_restart_message,
)

RETRY = RetryPolicy(
    transient_prefixes=("Automatic reconnection failed",),
    transient_substrings=("Network is unreachable",),
)
NO_BACKOFF = RestartPolicy(initial_delay=0)


def _supervisor(session: FakeSession, notifier: FakeNotifier, restart: RestartPolicy = NO_BACKOFF, **kwargs):
    return SessionSupervisor(
        session=session,
        notifier=notifier,
        retry_policy=RETRY,
        restart_policy=restart,
        **kwargs,
    )


def test_retry_policy_classification() -> None:
    assert RETRY.is_transient(ConnectionError("Automatic reconnection failed 5 time(s)"))
    assert RETRY.is_transient(OSError("[Errno 101] Network is unreachable"))
    assert not RETRY.is_transient(ConnectionError("Connection refused by proxy"))
    # Right message, wrong kind of exception.
    assert not RETRY.is_transient(ValueError("Automatic reconnection failed"))


def test_default_policy_retries_timeouts_and_refused_connections() -> None:
    policy = RetryPolicy()

    assert policy.is_transient(asyncio.TimeoutError())
    assert policy.is_transient(ConnectionRefusedError(111, "Connect call failed ('149.154.167.51', 443)"))
    assert not policy.is_transient(RuntimeError("Connect call failed"))


def test_loop_timeout_yields_retry_outcome() -> None:
    session = FakeSession(loop_results=[asyncio.TimeoutError()])
    supervisor = _supervisor(session, FakeNotifier())

    outcome = asyncio.run(supervisor.run_once())

    assert isinstance(outcome, TransientFault)


def test_transient_fault_yields_retry_outcome_without_notifying() -> None:
    session = FakeSession(loop_results=[ConnectionError("Automatic reconnection failed 5 time(s)")])
    notifier = FakeNotifier()
    supervisor = _supervisor(session, notifier)

    outcome = asyncio.run(supervisor.run_once())

    assert isinstance(outcome, TransientFault)
    assert "Automatic reconnection failed" in outcome.reason
    assert notifier.statuses == [ONLINE_MESSAGE]


def test_other_exception_yields_fatal_outcome() -> None:
    error = KeyError("boom")
    session = FakeSession(loop_results=[error])
    supervisor = _supervisor(session, FakeNotifier())

    outcome = asyncio.run(supervisor.run())

    assert outcome == FatalFault(error)
    assert session.starts == 1
    assert supervisor.state is SupervisorState.TERMINATED


def test_clean_loop_exit() -> None:
    session = FakeSession(loop_results=[None])
    supervisor = _supervisor(session, FakeNotifier())

    assert asyncio.run(supervisor.run()) == CleanExit()
    assert session.starts == 1


def test_one_restart_notification_after_successful_restart() -> None:
    events: list = []
    session = FakeSession(
        loop_results=[ConnectionError("Automatic reconnection failed 5 time(s)"), None],
        events=events,
    )
    notifier = FakeNotifier(events=events)
    supervisor = _supervisor(session, notifier)

    outcome = asyncio.run(supervisor.run())

    assert outcome == CleanExit()
    restart_notices = [msg for msg in notifier.statuses if msg.startswith("Bot restarted")]
    assert len(restart_notices) == 1
    assert "Automatic reconnection failed" in restart_notices[0]
    # Emitted after the second start, never before it.
    restart_index = events.index(("notify_status", restart_notices[0]))
    assert events.index(("start", 2)) < restart_index
    assert notifier.statuses == [ONLINE_MESSAGE, restart_notices[0], ONLINE_MESSAGE]
    assert supervisor.pending_faults == []


def test_faults_during_start_are_reported_once_together() -> None:
    session = FakeSession(
        loop_results=[None],
        start_errors=[OSError("Network is unreachable"), OSError("Network is unreachable"), None],
    )
    notifier = FakeNotifier()
    supervisor = _supervisor(session, notifier)

    assert asyncio.run(supervisor.run()) == CleanExit()
    assert session.starts == 3
    restart_notices = [msg for msg in notifier.statuses if msg.startswith("Bot restarted")]
    assert restart_notices == [format_restart_message(["OSError: Network is unreachable"] * 2)]


def test_max_attempts_turns_transient_into_fatal() -> None:
    error = OSError("Network is unreachable")
    session = FakeSession(start_errors=[error, error, error])
    notifier = FakeNotifier()
    supervisor = _supervisor(session, notifier, restart=RestartPolicy(max_attempts=2, initial_delay=0))

    outcome = asyncio.run(supervisor.run())

    assert isinstance(outcome, FatalFault)
    assert session.starts == 3
    assert notifier.statuses == []


def test_non_bot_account_is_fatal() -> None:
    session = FakeSession(is_bot=False)
    supervisor = _supervisor(session, FakeNotifier())

    outcome = asyncio.run(supervisor.run())

    assert isinstance(outcome, FatalFault)
    assert isinstance(outcome.error, NotABotError)


def test_event_handler_registered_once_and_ready_hook_runs_each_start() -> None:
    session = FakeSession(loop_results=[ConnectionError("Automatic reconnection failed 5 time(s)"), None])
    ready_calls: list[int] = []

    async def on_ready() -> None:
        ready_calls.append(session.starts)

    handler = object()
    supervisor = _supervisor(session, FakeNotifier(), event_handler=handler, on_ready=on_ready)

    asyncio.run(supervisor.run())

    assert session.handlers == [handler]
    assert ready_calls == [1, 2]


def test_shutdown_request_stops_retrying() -> None:
    async def scenario():
        stop = asyncio.Event()
        session = FakeSession(loop_results=[ConnectionError("Automatic reconnection failed 5 time(s)")])
        supervisor = _supervisor(session, FakeNotifier(), restart=RestartPolicy(initial_delay=30), stop_requested=stop)
        task = asyncio.ensure_future(supervisor.run())
        await asyncio.sleep(0.01)
        stop.set()
        outcome = await asyncio.wait_for(task, timeout=1)
        return outcome, session

    outcome, session = asyncio.run(scenario())

    assert outcome == CleanExit()
    assert session.starts == 1


def test_restart_policy_backoff() -> None:
    policy = RestartPolicy(initial_delay=1, factor=2, max_delay=5, max_attempts=3)

    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]
    assert not policy.exhausted(3)
    assert policy.exhausted(4)
    assert not RestartPolicy().exhausted(1000)


def test_startup_sweep_with_failed_ban_still_reaches_loop() -> None:
    spammer = UserSnapshot(id=1, username=None, fields={"first_name": "SpamBot"})
    client = FakeModerationClient(failing_bans=[1])
    client.participants = {100: [spammer]}
    config = EnforcementConfig(abort_batch_on_error=True)
    processor = ModerationProcessor(
        rules=build_rule_set(["SpamBot"], []),
        test_fields=["first_name"],
        client=client,
        enforcement=EnforcementAction(client, FakeNotifier(), config),
        config=config,
    )

    async def sweep() -> None:
        await processor.scan_channels([make_channel(100)])

    session = FakeSession()
    supervisor = _supervisor(session, FakeNotifier(), on_ready=sweep)

    outcome = asyncio.run(supervisor.run_once())

    assert outcome == CleanExit()
    assert ("loop", 1) in session.events
