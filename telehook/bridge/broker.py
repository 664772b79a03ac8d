"""Approval broker: send a message, then block until a command matches.

One ``ask()`` call is one exchange:

    validate length → authenticate → deliver to every recipient
        → prime cursor → poll until match or deadline

The poll loop is an explicit state machine (``Exchange``) with a single
``step()`` coroutine. ``ask()`` only drives ``step()`` and sleeps between
iterations, so the deadline check and cursor handling can be exercised with
a fake clock and an in-memory backend.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from .backend import ActivationEvent, Backend, Control, Event, TextEvent
from .commands import Command, find_command
from .errors import (
    BackendAuthError,
    DeliveryError,
    ExchangeTimeoutError,
    HandlerError,
    MessageTooLong,
    PollingError,
)

logger = logging.getLogger("telehook.broker")

TELEGRAM_MAX_LENGTH = 4096
MIN_POLL_INTERVAL_MS = 1000
ACK_TEXT = "✓ Received"

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class ExchangeState(str, Enum):
    PRIMING = "priming"
    POLLING = "polling"
    RESOLVED = "resolved"
    FAILED = "failed"


def build_controls(commands: Sequence[Command]) -> list[Control]:
    """One button per interactive command, in declaration order."""
    return [Control(c.label, c.callback_data) for c in commands if c.is_interactive]


class Exchange:
    """Poll-loop state for a single ask-and-wait cycle.

    Created after delivery. The deadline counts from construction.
    """

    def __init__(
        self,
        backend: Backend,
        commands: Sequence[Command],
        recipients: Iterable[int],
        timeout_ms: int = 0,
        clock: Clock = time.monotonic,
    ):
        self.backend = backend
        self.commands = list(commands)
        self.recipients = frozenset(recipients)
        self.timeout_ms = timeout_ms
        self.clock = clock
        self.started_at = clock()
        self.cursor = 0
        self.state = ExchangeState.PRIMING
        self.result: Optional[str] = None
        self.last_poll_error: Optional[PollingError] = None

    @property
    def done(self) -> bool:
        return self.state in (ExchangeState.RESOLVED, ExchangeState.FAILED)

    def elapsed_ms(self) -> float:
        return (self.clock() - self.started_at) * 1000

    def deadline_passed(self) -> bool:
        return self.timeout_ms > 0 and self.elapsed_ms() >= self.timeout_ms

    async def prime(self) -> None:
        """Drain and discard pending events so stale replies are never matched."""
        try:
            stale = await self.backend.fetch_events(offset=None, timeout=0)
        except Exception as e:
            logger.debug(f"Error clearing old updates: {e}")
            stale = []
        if stale:
            self.cursor = max(event.id for event in stale)
            logger.debug(f"Cleared {len(stale)} old update(s), starting from update_id {self.cursor}")
        self.state = ExchangeState.POLLING

    async def step(self) -> Optional[str]:
        """Run one poll iteration. Returns the payload once resolved, else None.

        Raises ExchangeTimeoutError when the deadline has passed.
        """
        if self.state is ExchangeState.PRIMING:
            await self.prime()
        if self.done:
            return self.result

        if self.deadline_passed():
            self.state = ExchangeState.FAILED
            logger.warning(f"Timeout waiting for Telegram response ({self.timeout_ms}ms)")
            raise ExchangeTimeoutError(self.timeout_ms) from self.last_poll_error

        try:
            events = await self.backend.fetch_events(offset=self.cursor + 1, timeout=0)
        except Exception as e:
            self.last_poll_error = PollingError(e)
            logger.error(str(self.last_poll_error))
            return None
        self.last_poll_error = None

        if events:
            logger.debug(f"Received {len(events)} update(s) from Telegram")

        for event in events:
            # Redelivered events are never reconsidered
            if event.id <= self.cursor:
                continue
            self.cursor = event.id
            payload = await self._handle(event)
            if payload is not None:
                return payload
        return None

    async def _handle(self, event: Event) -> Optional[str]:
        if isinstance(event, ActivationEvent):
            return await self._handle_activation(event)
        if isinstance(event, TextEvent):
            return await self._handle_text(event)
        return None

    async def _handle_activation(self, event: ActivationEvent) -> Optional[str]:
        if event.from_recipient not in self.recipients:
            logger.debug(f"Ignoring callback from unauthorized user {event.from_recipient}")
            return None

        found = find_command(self.commands, event.payload, interactive_only=True)
        if found is None:
            logger.debug(f"Ignoring unknown callback: {event.payload}")
            await self._acknowledge(event, None)
            return None

        logger.info(f"Received callback: {event.payload}")
        await self._acknowledge(event, ACK_TEXT)
        command, match = found
        return await self._resolve(command, match, event.payload)

    async def _handle_text(self, event: TextEvent) -> Optional[str]:
        logger.debug(f'Received text message from user {event.from_recipient}: "{event.text}"')
        if event.from_recipient not in self.recipients:
            logger.debug(f"Ignoring message from unauthorized user {event.from_recipient}")
            return None

        found = find_command(self.commands, event.text)
        if found is None:
            logger.debug(f"Ignoring unmatched message: {event.text}")
            return None

        logger.info(f"Received message matching command: {event.text}")
        command, match = found
        return await self._resolve(command, match, event.text)

    async def _acknowledge(self, event: ActivationEvent, text: Optional[str]) -> None:
        try:
            await self.backend.acknowledge(event.query_id, text)
        except Exception as e:
            logger.warning(f"Failed to answer callback query {event.query_id}: {e}")

    async def _resolve(self, command: Command, match, payload: str) -> str:
        self.state = ExchangeState.RESOLVED
        self.result = payload
        try:
            await command.apply(match)
        except Exception as e:
            logger.error(f"Handler for {payload!r} raised: {e}")
            raise HandlerError(payload, e) from e
        return payload


class ApprovalBroker:
    """Sends a message to a set of recipients and waits for a matching reply."""

    def __init__(self, backend: Backend, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep):
        self.backend = backend
        self._clock = clock
        self._sleep = sleep

    async def ask(
        self,
        text: str,
        commands: Sequence[Command],
        recipients: Iterable[int],
        timeout_ms: int = 0,
        poll_interval_ms: int = MIN_POLL_INTERVAL_MS,
    ) -> str:
        """Deliver ``text`` and return the first raw payload matching a command.

        Args:
            text: message body, at most TELEGRAM_MAX_LENGTH characters
            commands: ordered commands; the first match wins
            recipients: user ids to send to and accept replies from
            timeout_ms: 0 waits forever
            poll_interval_ms: spacing between polls, floored at MIN_POLL_INTERVAL_MS

        Raises:
            MessageTooLong, BackendAuthError, DeliveryError,
            ExchangeTimeoutError, HandlerError
        """
        logger.debug("Sending Telegram message")
        if len(text) > TELEGRAM_MAX_LENGTH:
            raise MessageTooLong(len(text), TELEGRAM_MAX_LENGTH)

        interval_ms = max(poll_interval_ms, MIN_POLL_INTERVAL_MS)
        logger.debug(f"Using poll interval: {interval_ms}ms")

        recipients = list(dict.fromkeys(recipients))

        try:
            await self.backend.authenticate()
        except Exception as e:
            logger.error(f"Failed to initialize Telegram bot: {e}")
            raise BackendAuthError(f"Invalid Telegram bot token: {e}") from e

        controls = build_controls(commands)
        for recipient in recipients:
            try:
                await self.backend.send_message(recipient, text, controls)
            except Exception as e:
                logger.error(f"Failed to send message to user {recipient}: {e}")
                raise DeliveryError(recipient, e) from e
            logger.info(f"Message sent successfully to user {recipient}")

        exchange = Exchange(self.backend, commands, recipients, timeout_ms, clock=self._clock)
        while True:
            result = await exchange.step()
            if exchange.state is ExchangeState.RESOLVED:
                return result
            await self._sleep(interval_ms / 1000)
