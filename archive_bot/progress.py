"""Block progress for archived feeds."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archive_bot.store.base import Feed

HasBlock = Callable[[int], bool]


@dataclass(frozen=True)
class ProgressStatus:
    """Blocks needed for a complete archive versus blocks held locally."""

    need: int
    have: int

    def __post_init__(self) -> None:
        if self.need < 0 or self.have < 0 or self.have > self.need:
            raise ValueError(f"Invalid progress: need={self.need}, have={self.have}")

    @property
    def percentage(self) -> float:
        """Share of blocks present; an empty archive is complete."""
        if self.need == 0:
            return 100.0
        return self.have / self.need * 100


def blocks_remaining(length: int, has: HasBlock) -> int:
    """Count the indices in ``[0, length)`` that are not present locally."""
    if not length:
        return 0
    return sum(1 for index in range(length) if not has(index))


def compute_progress(
    meta_length: int,
    content_length: int,
    meta_has: HasBlock,
    content_has: HasBlock,
) -> ProgressStatus:
    """Compute need/have counts for a meta feed and its content feed.

    Args:
        meta_length: Declared length of the meta feed
        content_length: Declared length of the content feed, 0 if unknown
        meta_has: Presence predicate for meta feed blocks
        content_has: Presence predicate for content feed blocks

    Returns:
        Progress over both feeds
    """
    need = meta_length + content_length
    have = (
        need
        - blocks_remaining(meta_length, meta_has)
        - blocks_remaining(content_length, content_has)
    )
    return ProgressStatus(need=need, have=have)


def feed_progress(feed: "Feed", content: "Feed | None" = None) -> ProgressStatus:
    """Compute progress for a feed as returned by the archive store."""
    if content is None:
        return compute_progress(feed.length, 0, feed.has, _absent)
    return compute_progress(feed.length, content.length, feed.has, content.has)


def is_complete(feed: "Feed") -> bool:
    """Return True if the feed declares blocks and holds every one of them."""
    return feed.length > 0 and blocks_remaining(feed.length, feed.has) == 0


def _absent(index: int) -> bool:
    return False
