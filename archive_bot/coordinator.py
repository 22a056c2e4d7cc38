"""Chat commands in, archive operations out, completion events back to chat."""

import asyncio
import random
import time
from collections.abc import Callable

from archive_bot.commands import (
    ContentId,
    Operation,
    ParseError,
    Verb,
    parse,
    to_content_id,
)
from archive_bot.core.logging import get_logger
from archive_bot.discovery import Discovery
from archive_bot.notifier import (
    Notifier,
    archived_message,
    resolve_channel,
    status_message,
    uptime_message,
)
from archive_bot.pending import AwaitingContent, AwaitingMeta, PendingSet
from archive_bot.progress import feed_progress, is_complete
from archive_bot.store.base import ArchiveStore, Feed, StoreError
from archive_bot.transport.base import Transport

logger = get_logger().bind(module="coordinator")


class Coordinator:
    """Owns the pending set and drives the archive store from chat commands.

    Every read-modify-write of the pending set happens under one lock. Store
    calls are awaited outside it, so the pending set is re-checked after each
    of them.
    """

    def __init__(
        self,
        store: ArchiveStore,
        notifier: Notifier,
        bot_name: str,
        channel: str | None = None,
        discovery: Discovery | None = None,
        port: int = 3282,
        join_delay_max: float = 30.0,
        clock: Callable[[], int] = time.monotonic_ns,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.bot_name = bot_name
        self.channel = channel
        self.discovery = discovery
        self.port = port
        self.join_delay_max = join_delay_max
        self.pending = PendingSet()
        self._lock = asyncio.Lock()
        self._clock = clock
        self._started = clock()
        self._attached = False
        self._join_tasks: set[asyncio.Task[None]] = set()

    def attach(self, transport: Transport | None = None) -> None:
        """Subscribe to store events and, if given, inbound chat messages."""
        if self._attached:
            return
        self._attached = True
        self.store.on("add", self.on_feed_added)
        self.store.on("remove", self.on_feed_removed)
        self.store.on("archived", self.on_feed_archived)
        if transport is not None:
            transport.on_message(self.handle_message)
            transport.on_registered(self.on_registered)

    async def handle_message(self, sender: str, destination: str, text: str) -> None:
        """Parse a chat line and run the operation it names."""
        try:
            command = parse(text, self.bot_name)
        except ParseError:
            return

        operation = command.to_operation()
        if operation is None:
            logger.debug(f"Ignoring command {command.command!r} from {sender}")
            return

        channel = resolve_channel(sender, destination, self.bot_name, self.channel)
        logger.info(
            f"Command {operation.verb.value} from {sender}",
            key=operation.key,
            channel=channel,
        )
        await self.execute(operation, channel)

    async def execute(self, operation: Operation, channel: str) -> None:
        key = operation.key
        match operation.verb:
            case Verb.TRACK if key is not None:
                await self.add(key, channel, content=False)
            case Verb.ADD if key is not None:
                await self.add(key, channel)
            case Verb.REMOVE if key is not None:
                await self.remove(key, channel)
            case Verb.STATUS if key is not None:
                await self.status_key(key, channel)
            case Verb.STATUS:
                await self.status(channel)
            case _:
                logger.debug(f"No action for {operation.verb.value} without a key")

    async def add(self, key: ContentId, channel: str, content: bool = True) -> None:
        """Start archiving ``key`` and remember who asked.

        The pending entry is rolled back if the store refuses the feed. The
        acknowledgement is dropped if the request was removed meanwhile.
        """
        entry = AwaitingMeta(key=key, channel=channel)
        async with self._lock:
            self.pending.add(entry)

        try:
            await self.store.add(key, content=content)
        except StoreError as e:
            async with self._lock:
                self.pending.discard(entry)
            logger.error(f"Failed to add {key}: {e}")
            await self.notifier.notify(e, channel)
            return

        async with self._lock:
            still_pending = self._is_outstanding(entry)
        if not still_pending:
            logger.debug(f"Request for {key} finished before it was acknowledged")
            return

        verb = "Adding" if content else "Tracking"
        await self.notifier.notify(None, channel, f"{verb} {key}")

    async def remove(self, key: ContentId, channel: str) -> None:
        """Stop archiving ``key``, cancelling any request still waiting on it."""
        async with self._lock:
            cancelled = self.pending.cancel(key)
        if cancelled:
            logger.info(f"Cancelled {len(cancelled)} pending request(s) for {key}")

        try:
            await self.store.remove(key)
        except StoreError as e:
            logger.error(f"Failed to remove {key}: {e}")
            await self.notifier.notify(e, channel)
            return

        await self.notifier.notify(None, channel, f"Removing {key}")

    async def status(self, channel: str) -> None:
        try:
            keys = await self.store.list()
        except StoreError as e:
            logger.error(f"Failed to list feeds: {e}")
            await self.notifier.notify(e, channel)
            return

        elapsed = self._clock() - self._started
        await self.notifier.notify(None, channel, uptime_message(elapsed, len(keys)))

    async def status_key(self, key: ContentId, channel: str) -> None:
        try:
            feed, content = await self.store.get(key)
        except StoreError as e:
            logger.error(f"Failed to get status for {key}: {e}")
            await self.notifier.notify(e, channel)
            return

        await self.notifier.notify(
            None, channel, status_message(key, feed_progress(feed, content))
        )

    async def on_feed_archived(self, key: str | bytes, feed: Feed) -> None:
        """Advance pending requests when the store finishes a feed.

        A meta feed with a content feed still missing hands its requests over
        to the content key; anything else completes. Events for keys nobody is
        waiting on are ignored.
        """
        key = to_content_id(key)
        logger.info(f"Feed archived {key}")

        async with self._lock:
            awaiting_meta = bool(self.pending.awaiting_meta(key))

        content: Feed | None = None
        lookup_error: StoreError | None = None
        if awaiting_meta:
            try:
                _, content = await self.store.get(key)
            except StoreError as e:
                logger.error(f"Failed to look up content feed for {key}: {e}")
                lookup_error = e

        replies: list[tuple[str, BaseException | None, str | None]] = []
        async with self._lock:
            for entry in self.pending.awaiting_meta(key):
                if lookup_error is not None:
                    self.pending.discard(entry)
                    replies.append((entry.channel, lookup_error, None))
                elif content is None:
                    self.pending.discard(entry)
                    replies.append(
                        (entry.channel, None, archived_message(key, feed.byte_length))
                    )
                elif is_complete(content):
                    # Content finished first, its archived event has passed
                    self.pending.discard(entry)
                    replies.append(
                        (entry.channel, None, archived_message(key, content.byte_length))
                    )
                else:
                    self.pending.replace(
                        entry,
                        AwaitingContent(
                            key=to_content_id(content.key),
                            channel=entry.channel,
                            meta_key=key,
                        ),
                    )

            for waiting in self.pending.awaiting_content(key):
                self.pending.discard(waiting)
                replies.append(
                    (
                        waiting.channel,
                        None,
                        archived_message(waiting.meta_key, feed.byte_length),
                    )
                )

        for channel, error, message in replies:
            if message is not None:
                logger.info(message)
            await self.notifier.notify(error, channel, message)

    async def on_feed_added(self, key: str | bytes) -> None:
        key = to_content_id(key)
        logger.info(f"Adding {key}")
        if self.discovery is not None:
            await self.discovery.join(key, self.port)

    async def on_feed_removed(self, key: str | bytes) -> None:
        key = to_content_id(key)
        logger.info(f"Removing {key}")
        if self.discovery is not None:
            await self.discovery.leave(key, self.port)

    async def on_registered(self) -> None:
        logger.info("Chat connection registered")

    async def join_archived_feeds(self, changes: Feed) -> None:
        """Announce the changes feed now and every stored feed after a random delay."""
        if self.discovery is None:
            return
        await self.discovery.join(to_content_id(changes.key), self.port)
        logger.info(f"Changes feed available at: {changes.key}")
        for key in await self.store.list():
            delay = random.uniform(0, self.join_delay_max)
            task = asyncio.create_task(self._join_later(self.discovery, key, delay))
            self._join_tasks.add(task)
            task.add_done_callback(self._join_tasks.discard)

    async def close(self) -> None:
        for task in list(self._join_tasks):
            task.cancel()
        await asyncio.gather(*self._join_tasks, return_exceptions=True)

    async def _join_later(
        self, discovery: Discovery, key: ContentId, delay: float
    ) -> None:
        await asyncio.sleep(delay)
        logger.info(f"Joining {key}")
        await discovery.join(key, self.port)

    def _is_outstanding(self, entry: AwaitingMeta) -> bool:
        if entry in self.pending:
            return True
        return any(
            isinstance(other, AwaitingContent)
            and other.meta_key == entry.key
            and other.channel == entry.channel
            for other in self.pending
        )
