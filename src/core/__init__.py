"""Core domain package for gatekeeper.

Core contains rule evaluation, enforcement sequencing, and session supervision
without any Telegram-specific code, keeping the moderation logic portable.
"""
