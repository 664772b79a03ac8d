"""Install and uninstall commands."""

from pathlib import Path

import click
from rich.panel import Panel

from . import cli
from .shared import console, _config_path
from .helpers import (
    _install_hooks,
    _load_agent_settings,
    _parse_user_ids,
    _uninstall_hooks,
    _write_agent_settings,
)
from telehook.config import TelehookSettings, save_settings

DEFAULT_CLAUDE_DIR = "~/.claude"


def _create_config_interactively(config_path: Path) -> None:
    console.print()
    console.print("[bold]=== Telegram Setup ===[/bold]")
    console.print()
    console.print("To enable Telegram integration, you need:")
    console.print("  1. A Telegram bot token from @BotFather")
    console.print("  2. Your Telegram user ID from @userinfobot")
    console.print()
    console.print("[dim]• Open Telegram and message @BotFather[/dim]")
    console.print("[dim]• Send /newbot and follow instructions[/dim]")
    console.print("[dim]• Copy the bot token (looks like: 123456:ABC-DEF...)[/dim]")
    console.print("[dim]• Message @userinfobot to get your user ID[/dim]")
    console.print()

    settings = TelehookSettings(
        telegram_poll_interval_ms=3000,
        permission_hook_tools_auto_approved=["Read", "Glob", "Grep"],
    )

    bot_token = click.prompt(
        "Telegram bot token (press Enter to skip)", default="", show_default=False,
    ).strip()

    if not bot_token:
        path = save_settings(settings, config_path)
        console.print("\n[yellow]Skipping Telegram setup. You can configure it later in the config file.[/yellow]")
        console.print(f"[green]✓ Created {path}[/green]\n")
        return

    user_ids = _parse_user_ids(click.prompt("Telegram user ID (comma-separated for multiple)"))
    if not user_ids:
        raise click.ClickException("At least one valid user ID is required")

    settings.telegram_enabled = True
    settings.telegram_bot_token = bot_token
    settings.telegram_user_ids = user_ids
    settings.permission_hook_enabled = True

    path = save_settings(settings, config_path)
    console.print(f"\n[green]✓ Created {path}[/green]")
    console.print("\n[bold green]Telegram integration enabled![/bold green]")
    console.print("Don't forget to:")
    console.print("  • Start a conversation with your bot (search for your bot's username)")
    console.print("  • Send /start to your bot\n")


def _agent_settings_path(claude_dir: str) -> Path:
    directory = Path(claude_dir).expanduser()
    if not directory.is_dir():
        console.print(f"[red]Error: {directory} directory not found[/red]")
        console.print("[dim]Claude Code must be installed and run at least once.[/dim]")
        raise SystemExit(1)
    return directory / "settings.json"


def _read_agent_settings(settings_path: Path) -> dict:
    try:
        return _load_agent_settings(settings_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error reading {settings_path}: {e}[/red]")
        raise SystemExit(1)


@cli.command()
@click.option("--claude-dir", default=DEFAULT_CLAUDE_DIR, show_default=True, help="Agent configuration directory")
@click.pass_context
def install(ctx, claude_dir):
    """Create config (if missing) and register hooks with the agent."""
    console.print(Panel("[bold]Telehook installer[/bold]\nTelegram approvals for agent hooks", style="blue"))

    config_path = _config_path(ctx)
    if config_path.exists():
        console.print(f"Found existing config: {config_path}")
    else:
        console.print("No config found. Let's create one...")
        _create_config_interactively(config_path)

    settings_path = _agent_settings_path(claude_dir)
    console.print(f"Settings file: {settings_path}\n")
    data = _read_agent_settings(settings_path)

    installed, existing = _install_hooks(data, config_path.resolve())

    try:
        _write_agent_settings(settings_path, data)
    except OSError as e:
        console.print(f"[red]Error writing {settings_path}: {e}[/red]")
        raise SystemExit(1)

    for event in installed:
        console.print(f"[green]✓ {event} hook installed[/green]")
    for event in existing:
        console.print(f"[dim]⊘ {event} hook already installed[/dim]")

    console.print("\n[bold green]Hooks installed successfully![/bold green]")
    console.print("[dim]Claude Code will use these hooks for future sessions.[/dim]")


@cli.command()
@click.option("--claude-dir", default=DEFAULT_CLAUDE_DIR, show_default=True, help="Agent configuration directory")
def uninstall(claude_dir):
    """Remove telehook hooks from the agent settings (config is kept)."""
    settings_path = Path(claude_dir).expanduser() / "settings.json"
    if not settings_path.exists():
        console.print(f"[dim]{settings_path} not found, nothing to do.[/dim]")
        return

    data = _read_agent_settings(settings_path)
    removed = _uninstall_hooks(data)
    if not removed:
        console.print("[dim]No telehook hooks installed.[/dim]")
        return

    _write_agent_settings(settings_path, data)
    for event in removed:
        console.print(f"[green]✓ Removed {event} hook[/green]")
