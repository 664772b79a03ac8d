"""Hook wire formats: JSON read from stdin and written to stdout."""

from dataclasses import dataclass
from typing import Any, Literal, Optional

from pydantic import BaseModel

Behavior = Literal["allow", "deny"]


class _HookInput(BaseModel):
    session_id: str
    cwd: str = ""
    transcript_path: str = ""
    permission_mode: str = ""
    hook_event_name: str = ""

    model_config = {"extra": "allow"}


class PermissionHookInput(_HookInput):
    tool_name: str
    tool_input: Any = None
    tool_use_id: str = ""


class StopHookInput(_HookInput):
    stop_hook_active: bool = False


@dataclass
class HookResult:
    """What a hook process prints (``output`` as JSON, if any) and its exit code."""
    exit_code: int
    output: Optional[dict] = None


def permission_decision(behavior: Behavior) -> dict:
    return {
        "hookSpecificOutput": {
            "hookEventName": "PermissionRequest",
            "decision": {"behavior": behavior},
        },
    }


def stop_decision(decision: Optional[str], reason: str) -> dict:
    """Stop hook output. ``decision`` is either "block" or left out entirely."""
    if decision is None:
        return {"reason": reason}
    return {"decision": decision, "reason": reason}
