"""Read the last user and assistant messages from a JSONL session transcript.

Each line of a transcript is one JSON entry:
  {"type": "user" | "assistant" | "system" | ..., "message": {"role": ..., "content": ...}}

``content`` is either a plain string or a list of content blocks
(``{"type": "text", "text": ...}``, ``{"type": "tool_result", ...}``, ...).
User entries that carry tool results are not things the user said, so they
are skipped.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("telehook.transcript")


@dataclass
class LastMessages:
    last_user_message: Optional[str] = None
    last_assistant_message: Optional[str] = None


def _text_blocks(content) -> list[str]:
    return [
        block.get("text") or ""
        for block in content
        if isinstance(block, dict) and block.get("type") == "text"
    ]


def extract_text(content, mode: str = "all") -> str:
    """Text of a message content field.

    Args:
        content: string or list of content blocks
        mode: "all" joins every text block, "last" keeps only the final one
    """
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    texts = _text_blocks(content)
    if mode == "last":
        return texts[-1] if texts else ""
    return "".join(texts)


def is_tool_result(content) -> bool:
    if not isinstance(content, list):
        return False
    return any(isinstance(block, dict) and block.get("type") == "tool_result" for block in content)


def get_last_messages(transcript_path: Union[str, Path]) -> LastMessages:
    """Scan a transcript and return the last user and assistant text.

    Missing or unreadable files yield an empty result. Malformed lines are
    skipped one by one.
    """
    result = LastMessages()
    path = Path(transcript_path).expanduser()

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.error(f"Transcript file not found: {path}")
        return result
    except OSError as e:
        logger.error(f"Error reading transcript: {e}")
        return result

    # Only "\n" ends an entry; U+2028 and friends may appear raw inside strings
    for lineno, line in enumerate(text.split("\n"), 1):
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse transcript line {lineno}: {e}")
            continue

        if not isinstance(entry, dict):
            continue
        message = entry.get("message")
        if not isinstance(message, dict):
            continue
        content = message.get("content", "")

        if entry.get("type") == "user" and not is_tool_result(content):
            result.last_user_message = extract_text(content)
        elif entry.get("type") == "assistant":
            result.last_assistant_message = extract_text(content, mode="last")

    return result
