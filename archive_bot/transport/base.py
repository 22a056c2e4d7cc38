"""Chat transport interface."""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

MessageHandler = Callable[[str, str, str], Awaitable[None] | None]
RegisteredHandler = Callable[[], Awaitable[None] | None]


class Transport(ABC):
    """A chat connection the bot listens and replies on.

    Inbound messages are delivered as ``(sender, destination, text)``.
    """

    def __init__(self) -> None:
        self._message_handlers: list[MessageHandler] = []
        self._registered_handlers: list[RegisteredHandler] = []

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether replies can currently be delivered."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection."""

    @abstractmethod
    async def say(self, destination: str, text: str) -> None:
        """Send ``text`` to a nick or channel."""

    async def disconnect(self) -> None:
        """Close the connection."""

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_registered(self, handler: RegisteredHandler) -> None:
        self._registered_handlers.append(handler)

    async def dispatch_message(self, sender: str, destination: str, text: str) -> None:
        await _call_all(self._message_handlers, sender, destination, text)

    async def dispatch_registered(self) -> None:
        await _call_all(self._registered_handlers)


async def _call_all(handlers: list[Any], *args: Any) -> None:
    for handler in list(handlers):
        result = handler(*args)
        if inspect.isawaitable(result):
            await result
