"""Shared utilities for Telehook CLI commands."""

import click
from rich.console import Console

from telehook.config import TelehookSettings, load_settings, resolve_config_path

console = Console()


def _config_path(ctx: click.Context):
    """Config path chosen with the global --config option (or its default)."""
    obj = ctx.find_root().obj or {}
    return resolve_config_path(obj.get("config_path"))


def _load(ctx: click.Context) -> TelehookSettings:
    return load_settings(_config_path(ctx))


def _mask_token(token: str) -> str:
    """Show only the bot id part of a token (``123456:****``)."""
    if not token:
        return ""
    bot_id, sep, _secret = token.partition(":")
    return f"{bot_id}:****" if sep else "****"
