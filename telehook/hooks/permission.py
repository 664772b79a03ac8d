"""PermissionRequest hook: ask Telegram whether a tool call may run.

Exit codes: 0 with a decision on stdout, 2 when the hook cannot decide (the
agent then falls back to its own permission prompt).
"""

import hashlib
import logging
import re
from typing import Callable

from pydantic import ValidationError

from ..bridge import ApprovalBroker, Backend, ExchangeTimeoutError, TelegramBackend, interactive
from ..bridge.broker import TELEGRAM_MAX_LENGTH
from ..config import TelehookSettings
from ..formatting import format_permission_message, format_tool_input
from .models import HookResult, PermissionHookInput, permission_decision

logger = logging.getLogger("telehook.hooks.permission")

EXIT_OK = 0
EXIT_UNDECIDED = 2


def request_tag(tool_use_id: str) -> str:
    """Short, stable tag for a tool call.

    Telegram caps button callback data at 64 bytes; a session UUID plus a
    full tool_use_id does not fit.
    """
    return hashlib.sha1(tool_use_id.encode("utf-8")).hexdigest()[:10]


def parse_response(raw: str, session_id: str):
    """Map a raw button payload back to "allow", "deny" or None."""
    sid = re.escape(session_id)
    if re.match(rf"^/approve\s+({sid})\s+(.+)$", raw):
        return "allow"
    if re.match(rf"^/deny\s+({sid})\s+(.+)$", raw):
        return "deny"
    return None


async def run_permission_hook(
    raw_input: str,
    settings: TelehookSettings,
    backend_factory: Callable[[str], Backend] = TelegramBackend,
    broker_factory: Callable[[Backend], ApprovalBroker] = ApprovalBroker,
) -> HookResult:
    try:
        data = PermissionHookInput.model_validate_json(raw_input)
    except ValidationError as e:
        logger.error(f"Invalid permission hook input: {e}")
        return HookResult(EXIT_UNDECIDED)

    logger.debug(f"Received permission request for tool: {data.tool_name}")

    if not settings.permission_hook_enabled:
        logger.debug("Permission hook disabled, returning error")
        return HookResult(EXIT_UNDECIDED)

    if data.tool_name in settings.permission_hook_tools_auto_approved:
        logger.debug(f"Auto-approving tool: {data.tool_name}")
        return HookResult(EXIT_OK, permission_decision("allow"))

    if not settings.telegram_enabled:
        logger.error("Permission hook requires Telegram to be enabled")
        return HookResult(EXIT_UNDECIDED)
    if not settings.telegram_bot_token:
        logger.error("Telegram enabled but bot token not configured")
        return HookResult(EXIT_UNDECIDED)
    if not settings.telegram_user_ids:
        logger.error("Telegram enabled but no user IDs configured")
        return HookResult(EXIT_UNDECIDED)

    text = format_permission_message(data.session_id, data.cwd, data.tool_name, format_tool_input(data.tool_input))
    if len(text) > TELEGRAM_MAX_LENGTH:
        logger.error(f"Message too long: {len(text)} characters")
        return HookResult(EXIT_UNDECIDED)

    tag = request_tag(data.tool_use_id)

    def _on_approve(match):
        logger.info(f"Permission approved for tool: {data.tool_name}")

    def _on_deny(match):
        logger.info(f"Permission denied for tool: {data.tool_name}")

    commands = [
        interactive("✓ Approve", f"/approve {data.session_id} {tag}", _on_approve),
        interactive("✗ Deny", f"/deny {data.session_id} {tag}", _on_deny),
    ]

    logger.debug("Sending permission request to Telegram")
    try:
        async with backend_factory(settings.telegram_bot_token) as backend:
            raw = await broker_factory(backend).ask(
                text,
                commands,
                settings.telegram_user_ids,
                timeout_ms=settings.permission_hook_timeout_ms,
                poll_interval_ms=settings.telegram_poll_interval_ms,
            )
    except ExchangeTimeoutError:
        if settings.permission_hook_allow_on_timeout:
            logger.warning("Timeout - allowing permission")
            return HookResult(EXIT_OK, permission_decision("allow"))
        logger.warning("Timeout - denying permission (default safe behavior)")
        return HookResult(EXIT_OK, permission_decision("deny"))
    except Exception as e:
        logger.error(f"Error: {e}")
        return HookResult(EXIT_UNDECIDED)

    logger.debug(f"Received Telegram response: {raw}")
    behavior = parse_response(raw, data.session_id)
    if behavior is None:
        logger.warning(f"Invalid Telegram response: {raw}")
        return HookResult(EXIT_UNDECIDED)

    logger.info(f"Permission {'approved' if behavior == 'allow' else 'denied'} via Telegram for tool: {data.tool_name}")
    return HookResult(EXIT_OK, permission_decision(behavior))
