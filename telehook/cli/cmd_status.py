"""Status command."""

from pathlib import Path

import click
from rich.table import Table

from . import cli
from .shared import console, _config_path, _load, _mask_token
from .helpers import _installed_events, _load_agent_settings
from telehook.hooks import HOOKS


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


@cli.command()
@click.option("--claude-dir", default="~/.claude", show_default=True, help="Agent configuration directory")
@click.pass_context
def status(ctx, claude_dir):
    """Show configuration and hook installation status."""
    from telehook import __version__

    config_path = _config_path(ctx)
    settings = _load(ctx)

    table = Table(title=f"Telehook Status v{__version__}", show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    found = "" if config_path.exists() else " [yellow](missing, using defaults)[/yellow]"
    table.add_row("Config", f"{config_path}{found}")
    table.add_row("Log file", f"{settings.log_file} ({settings.log_level})")

    table.add_row("Telegram", _yes_no(settings.telegram_enabled))
    table.add_row("Ready", _yes_no(settings.telegram_ready))
    table.add_row("Bot token", _mask_token(settings.telegram_bot_token) or "[red]not set[/red]")
    table.add_row("User IDs", ", ".join(str(u) for u in settings.telegram_user_ids) or "[red]none[/red]")
    table.add_row("Stop timeout", f"{settings.telegram_timeout_ms} ms")
    table.add_row("Poll interval", f"{settings.telegram_poll_interval_ms} ms")

    table.add_row("Permission hook", _yes_no(settings.permission_hook_enabled))
    table.add_row("Auto-approved", ", ".join(settings.permission_hook_tools_auto_approved) or "-")
    table.add_row("Permission timeout", f"{settings.permission_hook_timeout_ms} ms")
    table.add_row("On timeout", "allow" if settings.permission_hook_allow_on_timeout else "deny")

    settings_path = Path(claude_dir).expanduser() / "settings.json"
    try:
        installed = _installed_events(_load_agent_settings(settings_path))
    except (OSError, ValueError) as e:
        table.add_row("Hooks", f"[red]Error reading {settings_path}: {e}[/red]")
    else:
        for event in HOOKS:
            table.add_row(f"{event} hook", _yes_no(event in installed))

    console.print(table)
