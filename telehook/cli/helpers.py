"""Helper functions for Telehook CLI: agent settings.json hook registration.

The agent reads hooks from ``~/.claude/settings.json``:

    {"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "..."}]}], ...}}

Telehook adds one entry per hook event and leaves every other key alone.
"""

import json
import shlex
import sys
from pathlib import Path

from telehook.hooks import HOOKS

_MODULE_MARKER = "-m telehook"


def _hook_command(hook_name: str, config_path: Path) -> str:
    """Shell command the agent runs for one of our hooks."""
    return " ".join([
        shlex.quote(sys.executable),
        "-m", "telehook",
        "--config", shlex.quote(str(config_path)),
        "hook", hook_name,
    ])


def _is_telehook_command(hook: dict) -> bool:
    return hook.get("type") == "command" and _MODULE_MARKER in str(hook.get("command", ""))


def _load_agent_settings(settings_path: Path) -> dict:
    """Read settings.json, or an empty dict if it does not exist yet.

    Raises ValueError when the file exists but is not a JSON object.
    """
    if not settings_path.exists():
        return {}
    data = json.loads(settings_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{settings_path} does not contain a JSON object")
    return data


def _write_agent_settings(settings_path: Path, data: dict) -> None:
    settings_path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def _hook_exists(entries: list, command: str) -> bool:
    return any(
        hook.get("type") == "command" and hook.get("command") == command
        for entry in entries
        for hook in entry.get("hooks", [])
    )


def _install_hooks(data: dict, config_path: Path) -> tuple[list[str], list[str]]:
    """Register every telehook hook in ``data`` (in place).

    Returns:
        Tuple of (newly_installed_events, already_installed_events)
    """
    hooks = data.setdefault("hooks", {})
    installed, existing = [], []
    for event, hook_name in HOOKS.items():
        entries = hooks.setdefault(event, [])
        command = _hook_command(hook_name, config_path)
        if _hook_exists(entries, command):
            existing.append(event)
            continue
        entries.append({"hooks": [{"type": "command", "command": command}]})
        installed.append(event)
    return installed, existing


def _uninstall_hooks(data: dict) -> list[str]:
    """Remove telehook hook commands from ``data`` (in place).

    Entries left without any hooks are dropped, as are events left without
    entries. Returns the events that had something removed.
    """
    hooks = data.get("hooks")
    if not isinstance(hooks, dict):
        return []

    removed = []
    for event in list(hooks):
        entries = hooks[event] or []
        kept_entries = []
        touched = False
        for entry in entries:
            kept = [h for h in entry.get("hooks", []) if not _is_telehook_command(h)]
            if len(kept) != len(entry.get("hooks", [])):
                touched = True
            if kept:
                kept_entries.append({**entry, "hooks": kept})
        if touched:
            removed.append(event)
            if kept_entries:
                hooks[event] = kept_entries
            else:
                del hooks[event]
    return removed


def _installed_events(data: dict) -> set[str]:
    """Hook events that currently run a telehook command."""
    hooks = data.get("hooks") or {}
    return {
        event
        for event, entries in hooks.items()
        for entry in entries or []
        for hook in entry.get("hooks", [])
        if _is_telehook_command(hook)
    }


def _parse_user_ids(raw: str) -> list[int]:
    """Parse a comma-separated list of Telegram user IDs, skipping junk."""
    ids = []
    for part in raw.split(","):
        part = part.strip()
        try:
            ids.append(int(part))
        except ValueError:
            continue
    return ids
