"""Ping command: one real exchange against the configured bot."""

import asyncio
import secrets

import click

from . import cli
from .shared import console, _load
from telehook.bridge import ApprovalBroker, BridgeError, TelegramBackend, interactive
from telehook.log import setup_logging


@cli.command()
@click.option("--text", default="👋 Telehook test message", show_default=True, help="Message text")
@click.option("--timeout", default=120, show_default=True, help="Seconds to wait for the button press (0 = forever)")
@click.pass_context
def ping(ctx, text, timeout):
    """Send a test message and wait for the button press."""
    settings = _load(ctx)
    setup_logging(settings)

    if not settings.telegram_ready:
        console.print("[red]Telegram must be enabled with a bot token and user IDs. Run 'telehook install' first.[/red]")
        raise SystemExit(1)

    payload = f"/ping {secrets.token_hex(4)}"

    async def _run():
        async with TelegramBackend(settings.telegram_bot_token) as backend:
            return await ApprovalBroker(backend).ask(
                text,
                [interactive("✓ Got it", payload)],
                settings.telegram_user_ids,
                timeout_ms=timeout * 1000,
                poll_interval_ms=settings.telegram_poll_interval_ms,
            )

    console.print(f"[dim]Sending to {len(settings.telegram_user_ids)} user(s), waiting for a tap...[/dim]")
    try:
        result = asyncio.run(_run())
    except BridgeError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise SystemExit(1)

    console.print(f"[green]✓ Received {result}[/green]")
