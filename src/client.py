"""Telegram client factory for gatekeeper.

We explicitly manage the client's lifecycle (start/run_until_disconnected)
through the session supervisor, so it is obvious when the session is created
and when it ends.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def read_bot_token() -> str:
    load_dotenv()
    token = os.getenv("BOT_TOKEN")
    if not token:
        raise RuntimeError("Missing BOT_TOKEN in environment")
    return token


def build_client(session_file: str) -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    Must be called from inside the running event loop so Telethon binds to it.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    directory = os.path.dirname(session_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    logging.getLogger(__name__).info("Initializing Telegram client (session %s)", session_file)

    return TelegramClient(session_file, int(api_id), api_hash)
