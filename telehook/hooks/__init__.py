"""Agent hook entry points: PermissionRequest and Stop."""

from .models import HookResult, PermissionHookInput, StopHookInput, permission_decision, stop_decision
from .permission import run_permission_hook
from .stop import run_stop_hook

HOOKS = {
    "PermissionRequest": "permission",
    "Stop": "stop",
}

__all__ = [
    "HOOKS",
    "HookResult",
    "PermissionHookInput",
    "StopHookInput",
    "permission_decision",
    "stop_decision",
    "run_permission_hook",
    "run_stop_hook",
]
