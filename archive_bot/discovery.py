"""Peer discovery interface."""

from typing import Protocol

from archive_bot.commands import ContentId
from archive_bot.core.logging import get_logger

logger = get_logger().bind(module="discovery")


class Discovery(Protocol):
    """Announces archived feeds to the swarm."""

    async def join(self, key: ContentId, port: int) -> None: ...

    async def leave(self, key: ContentId, port: int) -> None: ...


class LoggingDiscovery:
    """Discovery that only records what would be announced."""

    def __init__(self) -> None:
        self.joined: set[ContentId] = set()

    async def join(self, key: ContentId, port: int) -> None:
        logger.info(f"Joining {key} on port {port}")
        self.joined.add(key)

    async def leave(self, key: ContentId, port: int) -> None:
        logger.info(f"Leaving {key} on port {port}")
        self.joined.discard(key)
