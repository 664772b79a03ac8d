"""Bridge exception hierarchy.

Callers catch these by type, never by message text.
"""


class BridgeError(Exception):
    """Base class for all approval bridge errors."""
    pass


class MessageTooLong(BridgeError):
    """Outbound text exceeds the backend's hard size limit."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Message length ({length}) exceeds Telegram maximum ({limit})")


class BackendAuthError(BridgeError):
    """Bot credentials rejected or backend unreachable."""
    pass


class DeliveryError(BridgeError):
    """Sending the message to one of the recipients failed."""

    def __init__(self, recipient: int, cause: Exception):
        self.recipient = recipient
        self.cause = cause
        super().__init__(f"Failed to send message to user {recipient}: {cause}")


class ExchangeTimeoutError(BridgeError, TimeoutError):
    """Deadline elapsed with no matching response."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__("timeout waiting for response")


class PollingError(BridgeError):
    """One fetch of pending events failed.

    Never raised out of ask(). If the last poll before the deadline failed,
    it is chained as the ExchangeTimeoutError cause.
    """

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Error polling Telegram updates: {cause}")


class HandlerError(BridgeError):
    """A matched command's handler raised.

    The exchange did resolve: ``payload`` holds the raw matched value and the
    handler's exception is chained as ``__cause__``.
    """

    def __init__(self, payload: str, cause: Exception):
        self.payload = payload
        super().__init__(f"Handler for {payload!r} failed: {cause}")
