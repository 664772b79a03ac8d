"""Telehook CLI: command line interface."""

import click
from telehook import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="telehook")
@click.option(
    "--config", "config_path",
    envvar="TELEHOOK_CONFIG",
    type=click.Path(dir_okay=False),
    help="Config file (default: ~/.telehook/config.json)",
)
@click.pass_context
def cli(ctx, config_path):
    """Telehook: approve agent tool calls and stops from Telegram"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands grouped by category."""
    console.print(f"[bold]Telehook v{__version__}[/bold] - approve agent tool calls and stops from Telegram\n")

    groups = {
        "Setup": [
            ("install", "Create config and register hooks in ~/.claude/settings.json"),
            ("uninstall", "Remove telehook hooks from ~/.claude/settings.json"),
        ],
        "Usage": [
            ("status", "Show configuration and hook status"),
            ("ping", "Send a test message and wait for the button press"),
        ],
        "Hooks": [
            ("hook permission", "PermissionRequest hook (reads JSON on stdin)"),
            ("hook stop", "Stop hook (reads JSON on stdin)"),
        ],
    }

    for category, commands in groups.items():
        console.print(f"  [bold cyan]{category}[/bold cyan]")
        for name, desc in commands:
            console.print(f"    [bold]telehook {name:16s}[/bold] {desc}")
        console.print()

    console.print("[dim]Run 'telehook <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_hook  # noqa: E402, F401
from . import cmd_install  # noqa: E402, F401
from . import cmd_status  # noqa: E402, F401
from . import cmd_ping  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()


def main():
    """CLI entry point."""
    import sys
    try:
        cli(standalone_mode=False)
    except click.UsageError as e:
        if e.ctx:
            click.echo(e.ctx.command.get_usage(e.ctx), err=True)
        click.echo("Try 'telehook help' for help.\n", err=True)
        click.echo(f"Error: {e.format_message()}", err=True)
        sys.exit(2)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Exit as e:
        sys.exit(e.code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
