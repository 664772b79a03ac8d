"""Messaging backend interface and the Telegram implementation.

The broker only talks to a ``Backend``: authenticate, send, fetch, acknowledge.
``TelegramBackend`` maps these onto python-telegram-bot's ``Bot`` API; tests
substitute an in-memory double.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.request import HTTPXRequest

logger = logging.getLogger("telehook.backend")


@dataclass(frozen=True)
class Control:
    """One inline button: visible label plus the payload sent back on press."""
    label: str
    data: str


@dataclass(frozen=True)
class ActivationEvent:
    """A recipient pressed an inline button."""
    id: int
    from_recipient: int
    payload: str
    query_id: str


@dataclass(frozen=True)
class TextEvent:
    """A recipient sent a text message."""
    id: int
    from_recipient: int
    text: str


@dataclass(frozen=True)
class IgnoredEvent:
    """An update the bridge has no use for (stickers, edits, channel posts)."""
    id: int


Event = Union[ActivationEvent, TextEvent, IgnoredEvent]


class Backend(ABC):
    """Abstract messaging backend."""

    @abstractmethod
    async def authenticate(self) -> None:
        """Verify credentials against the backend. Raises on failure."""
        ...

    @abstractmethod
    async def send_message(self, recipient: int, text: str, controls: Sequence[Control]) -> None:
        """Deliver ``text`` with ``controls`` rendered on a single row."""
        ...

    @abstractmethod
    async def fetch_events(self, offset: Optional[int] = None, timeout: int = 0) -> list[Event]:
        """Return pending events with id >= offset (all pending if offset is None)."""
        ...

    @abstractmethod
    async def acknowledge(self, query_id: str, text: Optional[str] = None) -> None:
        """Clear the pending state of a button press on the remote side."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


def update_to_event(update: Update) -> Event:
    """Map a Telegram ``Update`` onto the bridge's event union."""
    query = update.callback_query
    if query is not None:
        if query.data is None or query.from_user is None:
            return IgnoredEvent(update.update_id)
        return ActivationEvent(
            id=update.update_id,
            from_recipient=query.from_user.id,
            payload=query.data,
            query_id=query.id,
        )

    message = update.message
    if message is not None and message.text and message.from_user is not None:
        return TextEvent(
            id=update.update_id,
            from_recipient=message.from_user.id,
            text=message.text,
        )

    return IgnoredEvent(update.update_id)


class TelegramBackend(Backend):
    """Telegram Bot API backend (python-telegram-bot)."""

    def __init__(self, bot_token: str, bot: Optional[Bot] = None):
        # Owned requests are closed directly: Bot.shutdown() is a no-op after
        # a failed initialize().
        self._requests: tuple[HTTPXRequest, ...] = ()
        if bot is None:
            self._requests = (HTTPXRequest(), HTTPXRequest())
            bot = Bot(bot_token, request=self._requests[0], get_updates_request=self._requests[1])
        self._bot = bot
        self._initialized = False

    async def authenticate(self) -> None:
        """Initialize the bot once. ``Bot.initialize()`` validates the token via getMe."""
        if not self._initialized:
            logger.debug("Initializing Telegram bot")
            await self._bot.initialize()
            self._initialized = True
        logger.info(f"Telegram bot initialized successfully (@{self._bot.username})")

    async def send_message(self, recipient: int, text: str, controls: Sequence[Control]) -> None:
        reply_markup = None
        if controls:
            row = [InlineKeyboardButton(c.label, callback_data=c.data) for c in controls]
            reply_markup = InlineKeyboardMarkup([row])
        await self._bot.send_message(chat_id=recipient, text=text, reply_markup=reply_markup)

    async def fetch_events(self, offset: Optional[int] = None, timeout: int = 0) -> list[Event]:
        updates = await self._bot.get_updates(offset=offset, timeout=timeout)
        return [update_to_event(u) for u in updates]

    async def acknowledge(self, query_id: str, text: Optional[str] = None) -> None:
        await self._bot.answer_callback_query(query_id, text=text)

    async def close(self) -> None:
        if self._initialized:
            await self._bot.shutdown()
            self._initialized = False
            return
        for request in self._requests:
            await request.shutdown()
