"""Hook commands: invoked by the agent, never by hand.

stdin carries the hook request as JSON; stdout carries only the decision
JSON, so nothing else may print here.
"""

import asyncio
import json
import sys

import click

from . import cli
from .shared import _load
from telehook.hooks import run_permission_hook, run_stop_hook
from telehook.log import setup_logging


@cli.group()
def hook():
    """Run an agent hook (reads the request JSON from stdin)."""


def _run_hook(ctx: click.Context, runner) -> None:
    settings = _load(ctx)
    setup_logging(settings)
    raw = click.get_text_stream("stdin").read()
    result = asyncio.run(runner(raw, settings))
    if result.output is not None:
        click.echo(json.dumps(result.output, indent=2, ensure_ascii=False))
    sys.exit(result.exit_code)


@hook.command()
@click.pass_context
def permission(ctx):
    """PermissionRequest hook: approve or deny a tool call from Telegram."""
    _run_hook(ctx, run_permission_hook)


@hook.command()
@click.pass_context
def stop(ctx):
    """Stop hook: let the agent stop, or send it back with /continue."""
    _run_hook(ctx, run_stop_hook)
