"""Archive store interface consumed by the coordinator."""

import inspect
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Literal, Protocol

from archive_bot.commands import ContentId
from archive_bot.core.logging import get_logger

logger = get_logger().bind(module="archive_store")

StoreEvent = Literal["add", "remove", "archived"]
EventHandler = Callable[..., Awaitable[None] | None]


class StoreError(Exception):
    """Raised when an archive store operation fails."""


class NotFound(StoreError):
    """Raised when a key is not tracked by the archive store."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Feed {key} is not archived")
        self.key = key


class StoreOpenError(StoreError):
    """Raised when the store or its changes feed cannot be opened."""


class Feed(Protocol):
    """A feed as exposed by the archive store."""

    @property
    def key(self) -> ContentId: ...

    @property
    def length(self) -> int: ...

    @property
    def byte_length(self) -> int: ...

    def has(self, index: int) -> bool: ...


class ArchiveStore(ABC):
    """Base class for archive stores.

    Subclasses implement the feed operations and call :meth:`emit` when a
    feed is added, removed or fully archived. The ``archived`` event is
    emitted with ``(key, feed)``; ``add`` and ``remove`` with ``(key,)``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def on(self, event: StoreEvent, handler: EventHandler) -> None:
        """Subscribe ``handler`` to a store event."""
        self._handlers[event].append(handler)

    async def emit(self, event: StoreEvent, *args: Any) -> None:
        """Deliver an event to every subscribed handler in order.

        A failing handler is logged and does not stop the others, nor the
        store operation that emitted the event.
        """
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for store event {event!r} failed")

    @abstractmethod
    async def open(self) -> Feed:
        """Open the store and return its changes feed.

        Raises:
            StoreOpenError: If the store cannot be opened
        """

    @abstractmethod
    async def add(self, key: ContentId, content: bool = True) -> None:
        """Start archiving a feed.

        Args:
            key: Feed key
            content: Also archive the feed's content feed
        """

    @abstractmethod
    async def remove(self, key: ContentId) -> None:
        """Stop archiving a feed and drop it from the store."""

    @abstractmethod
    async def get(self, key: ContentId) -> tuple[Feed, Feed | None]:
        """Return a tracked feed and its content feed, if known.

        Raises:
            NotFound: If the key is not tracked
        """

    @abstractmethod
    async def list(self) -> list[ContentId]:
        """Return the keys of every tracked feed."""

    async def close(self) -> None:
        """Release store resources."""
        logger.debug("Archive store closed")
