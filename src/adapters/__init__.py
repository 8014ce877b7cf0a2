"""Telethon-facing adapters: session, moderation RPCs, events, notifications."""
