"""Stop hook: report the finished turn and wait for stop/continue.

Tapping the button lets the agent stop. Replying
``/continue <session_id> <reason>`` blocks the stop and hands ``reason``
back to the agent as its next instruction.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from ..bridge import ApprovalBroker, Backend, ExchangeTimeoutError, TelegramBackend, interactive, passive
from ..config import TelehookSettings
from ..formatting import format_stop_message
from ..transcript import get_last_messages
from .models import HookResult, StopHookInput, stop_decision

logger = logging.getLogger("telehook.hooks.stop")

EXIT_OK = 0
EXIT_ERROR = 1

TIMEOUT_REASON = "timeout waiting for response"


def continue_pattern(session_id: str) -> re.Pattern:
    return re.compile(rf"^/continue\s+{re.escape(session_id)}\s+(.+)$", re.DOTALL)


async def run_stop_hook(
    raw_input: str,
    settings: TelehookSettings,
    backend_factory: Callable[[str], Backend] = TelegramBackend,
    broker_factory: Callable[[Backend], ApprovalBroker] = ApprovalBroker,
) -> HookResult:
    try:
        data = StopHookInput.model_validate_json(raw_input)
    except ValidationError as e:
        logger.error(f"Invalid stop hook input: {e}")
        return HookResult(EXIT_ERROR)

    logger.debug(f"Received hook input: {data.model_dump_json()}")

    if not settings.telegram_enabled:
        logger.debug("Telegram notifications disabled, exiting")
        return HookResult(EXIT_OK)
    if not settings.telegram_bot_token:
        logger.error("Telegram enabled but bot token not configured")
        return HookResult(EXIT_OK)
    if not settings.telegram_user_ids:
        logger.warning("Telegram enabled but no user IDs configured, exiting")
        return HookResult(EXIT_OK)

    last = get_last_messages(data.transcript_path)
    logger.debug(f"Last user message: {last.last_user_message or '(none)'}")
    logger.debug(f"Last assistant message: {last.last_assistant_message or '(none)'}")

    text = format_stop_message(
        session_id=data.session_id,
        cwd=data.cwd,
        timestamp=datetime.now(timezone.utc).isoformat(),
        last_user_message=last.last_user_message,
        last_assistant_message=last.last_assistant_message,
    )

    stop_payload = f"/stop {data.session_id}"
    block_re = continue_pattern(data.session_id)

    def _on_stop(match):
        logger.info("Response approved via Telegram")

    def _on_continue(match):
        logger.info(f"Response blocked via Telegram: {match[0]}")

    commands = [
        interactive("✓ Stop (allow claude to stop)", stop_payload, _on_stop),
        passive(block_re, _on_continue),
    ]

    try:
        async with backend_factory(settings.telegram_bot_token) as backend:
            raw = await broker_factory(backend).ask(
                text,
                commands,
                settings.telegram_user_ids,
                timeout_ms=settings.telegram_timeout_ms,
                poll_interval_ms=settings.telegram_poll_interval_ms,
            )
    except ExchangeTimeoutError:
        return HookResult(EXIT_OK, stop_decision(None, TIMEOUT_REASON))
    except Exception as e:
        logger.error(f"Error: {e}")
        return HookResult(EXIT_ERROR)

    if raw == stop_payload:
        return HookResult(EXIT_OK)

    m = block_re.match(raw)
    if m:
        return HookResult(EXIT_OK, stop_decision("block", m.group(1)))
    return HookResult(EXIT_OK)
