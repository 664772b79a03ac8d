"""Approval bridge: the ask-and-wait exchange over a messaging backend.

- Commands: exact/regex patterns with handlers, rendered as buttons or matched as text
- Backend: abstract send/fetch/acknowledge interface plus the Telegram implementation
- Broker: the exchange state machine and ``ApprovalBroker.ask``
"""

from .backend import ActivationEvent, Backend, Control, IgnoredEvent, TelegramBackend, TextEvent
from .broker import (
    MIN_POLL_INTERVAL_MS,
    TELEGRAM_MAX_LENGTH,
    ApprovalBroker,
    Exchange,
    ExchangeState,
)
from .commands import Command, CommandKind, ExactPattern, RegexPattern, find_command, interactive, passive
from .errors import (
    BackendAuthError,
    BridgeError,
    DeliveryError,
    ExchangeTimeoutError,
    HandlerError,
    MessageTooLong,
    PollingError,
)

__all__ = [
    # Backend
    "ActivationEvent",
    "Backend",
    "Control",
    "IgnoredEvent",
    "TelegramBackend",
    "TextEvent",
    # Broker
    "MIN_POLL_INTERVAL_MS",
    "TELEGRAM_MAX_LENGTH",
    "ApprovalBroker",
    "Exchange",
    "ExchangeState",
    # Commands
    "Command",
    "CommandKind",
    "ExactPattern",
    "RegexPattern",
    "find_command",
    "interactive",
    "passive",
    # Errors
    "BackendAuthError",
    "BridgeError",
    "DeliveryError",
    "ExchangeTimeoutError",
    "HandlerError",
    "MessageTooLong",
    "PollingError",
]
