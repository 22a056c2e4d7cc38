"""In-flight archive requests awaiting completion."""

from collections.abc import Iterator
from dataclasses import dataclass

from archive_bot.commands import ContentId


@dataclass(eq=False)
class AwaitingMeta:
    """An add or track request waiting for the requested feed itself."""

    key: ContentId
    channel: str


@dataclass(eq=False)
class AwaitingContent:
    """A request whose meta feed is archived, waiting on its content feed."""

    key: ContentId
    channel: str
    meta_key: ContentId


PendingEntry = AwaitingMeta | AwaitingContent


class PendingSet:
    """Ordered collection of pending entries.

    Entries compare by identity, so two requests for the same key are tracked
    separately. The set does no locking of its own: the coordinator serializes
    every mutation.
    """

    def __init__(self) -> None:
        self._entries: list[PendingEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingEntry]:
        return iter(list(self._entries))

    def __contains__(self, entry: object) -> bool:
        return any(existing is entry for existing in self._entries)

    def add(self, entry: PendingEntry) -> None:
        self._entries.append(entry)

    def discard(self, entry: PendingEntry) -> bool:
        """Remove one specific entry.

        Returns:
            True if the entry was present
        """
        for index, existing in enumerate(self._entries):
            if existing is entry:
                del self._entries[index]
                return True
        return False

    def replace(self, entry: PendingEntry, replacement: PendingEntry) -> None:
        """Swap an entry for its successor, keeping its position."""
        for index, existing in enumerate(self._entries):
            if existing is entry:
                self._entries[index] = replacement
                return
        raise KeyError(entry.key)

    def awaiting_meta(self, key: ContentId) -> list[AwaitingMeta]:
        return [
            entry
            for entry in self._entries
            if isinstance(entry, AwaitingMeta) and entry.key == key
        ]

    def awaiting_content(self, key: ContentId) -> list[AwaitingContent]:
        return [
            entry
            for entry in self._entries
            if isinstance(entry, AwaitingContent) and entry.key == key
        ]

    def cancel(self, key: ContentId) -> list[PendingEntry]:
        """Drop every entry for ``key``, including content entries it spawned.

        Returns:
            The removed entries
        """
        removed = [entry for entry in self._entries if _references(entry, key)]
        self._entries = [entry for entry in self._entries if not _references(entry, key)]
        return removed


def _references(entry: PendingEntry, key: ContentId) -> bool:
    if entry.key == key:
        return True
    return isinstance(entry, AwaitingContent) and entry.meta_key == key
