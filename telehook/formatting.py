"""Message texts sent to Telegram by the hooks.

Telegram rejects messages over 4096 characters, so every formatter here
either truncates its variable parts to fit or is checked by the caller.
"""

import json

from .bridge.broker import TELEGRAM_MAX_LENGTH

MAX_TOOL_INPUT_LENGTH = 2000
MAX_USER_MESSAGE_LENGTH = 1000
MAX_ASSISTANT_MESSAGE_LENGTH = 3500

_USER_SLOT = "__USER_MESSAGE__"
_ASSISTANT_SLOT = "__ASSISTANT_MESSAGE__"


def truncate(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length`` characters, ending with "..." when cut."""
    if len(text) <= max_length:
        return text
    return text[: max(max_length - 3, 0)] + "..."


def format_tool_input(tool_input) -> str:
    if tool_input is None:
        return "(no parameters)"
    try:
        rendered = json.dumps(tool_input, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return "(unable to display parameters)"
    return truncate(rendered, MAX_TOOL_INPUT_LENGTH)


def format_permission_message(session_id: str, cwd: str, tool_name: str, tool_input_str: str) -> str:
    return (
        "🔐 Permission Request\n"
        "\n"
        f"Session: {session_id}\n"
        f"Working: {cwd}\n"
        f"Tool: {tool_name}\n"
        "\n"
        "Parameters:\n"
        f"{tool_input_str}\n"
        "\n"
        "---\n"
        "• Approve - Allow this tool use\n"
        "• Deny - Block this tool use"
    )


def format_stop_message(
    session_id: str,
    cwd: str,
    timestamp: str,
    last_user_message,
    last_assistant_message,
    max_length: int = TELEGRAM_MAX_LENGTH,
) -> str:
    """Session summary sent when the agent stops.

    The space left after the fixed template is split 40/60 between the user
    and assistant text, each also capped on its own.
    """
    template = (
        "🤖 Claude Code Session\n"
        "\n"
        f"Session: {session_id}\n"
        f"Working: {cwd}\n"
        f"Time: {timestamp}\n"
        "\n"
        "👤 User said:\n"
        f"{_USER_SLOT}\n"
        "\n"
        "🤖 Claude responded:\n"
        f"{_ASSISTANT_SLOT}\n"
        "\n"
        "---\n"
        f"Reply with: /continue {session_id} This needs revision\n"
        "Or tap the button below to approve"
    )

    available = max(max_length - len(template), 0)
    max_user = min(MAX_USER_MESSAGE_LENGTH, int(available * 0.4))
    max_assistant = min(MAX_ASSISTANT_MESSAGE_LENGTH, int(available * 0.6))

    user_text = truncate(last_user_message or "(no message)", max_user)
    assistant_text = truncate(last_assistant_message or "(no message)", max_assistant)

    # Split instead of str.replace so slot markers inside the texts stay literal
    head, rest = template.split(_USER_SLOT, 1)
    middle, tail = rest.split(_ASSISTANT_SLOT, 1)
    return head + user_text + middle + assistant_text + tail
