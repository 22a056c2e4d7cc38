"""Fake collaborators shared by the tests."""

import asyncio
from dataclasses import dataclass, field

from archive_bot.commands import ContentId
from archive_bot.store.base import ArchiveStore, NotFound
from archive_bot.transport.base import Transport

META_KEY = ContentId("a" * 64)
CONTENT_KEY = ContentId("b" * 64)
OTHER_KEY = ContentId("0123456789abcdef" * 4)
CHANGES_KEY = ContentId("c" * 64)

BOT_NAME = "archive-bot"
CHANNEL = "#dat"


@dataclass
class FakeFeed:
    """Feed whose present blocks are listed explicitly."""

    key: ContentId
    length: int = 0
    byte_length: int = 0
    present: set[int] = field(default_factory=set)

    def has(self, index: int) -> bool:
        return index in self.present


class FakeStore(ArchiveStore):
    """In-memory archive store with hooks for failures and slow calls."""

    def __init__(self) -> None:
        super().__init__()
        self.feeds: dict[str, FakeFeed] = {}
        self.contents: dict[str, FakeFeed] = {}
        self.add_calls: list[tuple[str, bool]] = []
        self.remove_calls: list[str] = []
        self.add_error: Exception | None = None
        self.remove_error: Exception | None = None
        self.get_error: Exception | None = None
        self.list_error: Exception | None = None
        self.add_gate: asyncio.Event | None = None

    async def open(self) -> FakeFeed:
        return FakeFeed(CHANGES_KEY, length=3)

    async def add(self, key: ContentId, content: bool = True) -> None:
        self.add_calls.append((key, content))
        if self.add_gate is not None:
            await self.add_gate.wait()
        if self.add_error is not None:
            raise self.add_error
        self.feeds.setdefault(key, FakeFeed(key))

    async def remove(self, key: ContentId) -> None:
        self.remove_calls.append(key)
        if self.remove_error is not None:
            raise self.remove_error
        self.feeds.pop(key, None)
        self.contents.pop(key, None)

    async def get(self, key: ContentId) -> tuple[FakeFeed, FakeFeed | None]:
        if self.get_error is not None:
            raise self.get_error
        if key not in self.feeds:
            raise NotFound(key)
        return self.feeds[key], self.contents.get(key)

    async def list(self) -> list[ContentId]:
        if self.list_error is not None:
            raise self.list_error
        return [ContentId(key) for key in self.feeds]


class FakeTransport(Transport):
    """Records every outbound message."""

    def __init__(self, connected: bool = True) -> None:
        super().__init__()
        self._connected = connected
        self.said: list[tuple[str, str]] = []

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def say(self, destination: str, text: str) -> None:
        self.said.append((destination, text))
