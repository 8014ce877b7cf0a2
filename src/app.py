"""Application entry point for the gatekeeper moderation bot."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.event_handler import ModerationEventHandler
from adapters.telegram_notifier import OwnerNotifier
from adapters.telethon_session import TRANSIENT_EXCEPTION_TYPES, TelethonModerationClient, TelethonSession
from client import build_client, read_bot_token
from core.config import BotConfig
from core.enforcement import EnforcementAction
from core.lifecycle import LifecycleManager
from core.models import UserSnapshot
from core.processor import ModerationProcessor
from core.rules_engine import build_rule_set, evaluate
from core.supervisor import CleanExit, FatalFault, SessionSupervisor, describe_error

NAME = "GATEKEEPER"
FONT = "tarty-1"

# Redacted from every log line regardless of config.
DEFAULT_SECRETS = ("BOT_TOKEN", "API_HASH")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    names = list(DEFAULT_SECRETS)
    if redact_cfg.get("enabled", True):
        names.extend(redact_cfg.get("patterns", []))
    values = []
    for name in names:
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    config = config or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/gatekeeper.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO (reconnects, DC switches).
    logging.getLogger("telethon").setLevel(str(config.get("telethon_level", "WARNING")).upper())


async def _serve(config: BotConfig) -> None:
    logger = logging.getLogger(__name__)

    rules = build_rule_set(config.bad_names, config.bad_name_regexes)
    logger.info(
        "%s blacklisted names and %s regex rules are loaded (fields: %s)",
        len(rules.blacklist),
        len(rules.regex_rules),
        ", ".join(config.test_fields),
    )
    if config.enforcement.dry_run:
        logger.warning("Dry run enabled: bans and deletions are logged but not performed")

    client = build_client(config.session_file)
    session = TelethonSession(client, read_bot_token())
    moderation_client = TelethonModerationClient(client, config.test_fields, config.scan_chats)
    notifier = OwnerNotifier(client, config.notification)
    lifecycle = LifecycleManager(session, notifier)

    enforcement = EnforcementAction(moderation_client, notifier, config.enforcement)
    processor = ModerationProcessor(
        rules=rules,
        test_fields=config.test_fields,
        client=moderation_client,
        enforcement=enforcement,
        config=config.enforcement,
    )

    async def on_ready() -> None:
        lifecycle.install()
        lifecycle.save()
        if not config.scan_on_start:
            return
        try:
            channels = await moderation_client.list_admined_channels()
            flagged = await processor.scan_channels(channels)
        except Exception:
            logger.exception("Startup scan failed")
            return
        logger.info("Startup scan complete: channels=%s, flagged=%s", len(channels), flagged)

    supervisor = SessionSupervisor(
        session=session,
        notifier=notifier,
        retry_policy=dataclasses.replace(config.retry, exception_types=TRANSIENT_EXCEPTION_TYPES),
        restart_policy=config.restart,
        stop_requested=lifecycle.stop_requested,
        event_handler=ModerationEventHandler(processor, check_messages=config.check_messages),
        on_ready=on_ready,
    )

    outcome = await supervisor.run()
    logger.info("Exited loop.")
    if isinstance(outcome, FatalFault):
        await notifier.notify_status(f"Bot stopped after a fatal error: {describe_error(outcome.error)}")
        await lifecycle.shutdown(save=True, exit_code=1)
    elif isinstance(outcome, CleanExit):
        await lifecycle.shutdown(save=lifecycle.requested_save, exit_code=0)


def _run() -> None:
    _print_banner()
    config = settings.load_config()
    _configure_logging(config.logging)
    logging.getLogger(__name__).info("Starting gatekeeper")
    asyncio.run(_serve(config))


def _check(value: str, field_name: str) -> None:
    """Evaluate one display value against the configured rules, offline."""

    config = settings.load_config()
    rules = build_rule_set(config.bad_names, config.bad_name_regexes)
    user = UserSnapshot(id=0, fields={field_name: value})
    verdict = evaluate(user, rules, [field_name])
    if not verdict.bad:
        print(f"OK: {field_name} {value!r} matches no rule")
        return
    print(f"BAD: {field_name} {value!r}")
    for reason in verdict.reasons:
        print(f" - {reason}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="gatekeeper")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the moderation bot")
    check_parser = subparsers.add_parser("check", help="Test a display name against the configured rules")
    check_parser.add_argument("value", help="Display value to test, e.g. a first name")
    check_parser.add_argument("--field", default="first_name", help="Field name to report (default: first_name)")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check(args.value, args.field)
        return
    _run()


if __name__ == "__main__":
    main()
