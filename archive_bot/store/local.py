"""Directory-backed archive store.

Tracked feeds are indexed in SQLite; blocks live on disk under
``feeds/<prefix>/<key>/<index>``. Blocks arrive through :meth:`put_block`
from whatever replicates them, and a feed is reported ``archived`` once all
of its declared blocks are present.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from archive_bot.commands import ContentId, to_content_id
from archive_bot.core.logging import get_logger
from archive_bot.store.base import ArchiveStore, Feed, NotFound, StoreError, StoreOpenError
from archive_bot.store.retry import with_db_retry

logger = get_logger().bind(module="local_store")

T = TypeVar("T")


@dataclass(frozen=True)
class LocalFeed:
    """Snapshot of a feed held in the local store."""

    key: ContentId
    length: int
    byte_length: int
    directory: Path

    def has(self, index: int) -> bool:
        if index < 0 or index >= self.length:
            return False
        return (self.directory / str(index)).exists()


@dataclass(frozen=True)
class ChangesFeed:
    """The store's root feed, one block per recorded add or remove."""

    key: ContentId
    length: int
    byte_length: int

    def has(self, index: int) -> bool:
        return 0 <= index < self.length


class LocalArchiveStore(ArchiveStore):
    """Archives feeds to a local directory."""

    def __init__(self, store_path: Path):
        """Initialize the store.

        Args:
            store_path: Directory holding the index and feed blocks
        """
        super().__init__()
        self.store_path = Path(store_path)
        self.db_path = self.store_path / "index.db"
        self.feeds_path = self.store_path / "feeds"

    async def open(self) -> Feed:
        try:
            await asyncio.to_thread(self._init_storage)
            changes_key = await asyncio.to_thread(self._load_changes_key)
            return await asyncio.to_thread(self._changes_feed, changes_key)
        except (OSError, sqlite3.Error) as e:
            raise StoreOpenError(f"Cannot open archive at {self.store_path}: {e}") from e

    async def add(self, key: ContentId, content: bool = True) -> None:
        key = self._validate_key(key)
        added = await self._run(f"Failed to add {key}", self._insert_feed, key, content)
        if added:
            await self.emit("add", key)

    async def remove(self, key: ContentId) -> None:
        key = self._validate_key(key)
        removed = await self._run(f"Failed to remove {key}", self._delete_feed, key)
        if removed:
            await self.emit("remove", key)

    async def get(self, key: ContentId) -> tuple[Feed, Feed | None]:
        key = self._validate_key(key)
        row = await self._run(f"Failed to read {key}", self._fetch_row, key)
        if row is None:
            raise NotFound(key)
        feed = self._feed_from_row(row)
        content_key = row["content_key"]
        if not content_key:
            return feed, None
        content_row = await self._run(
            f"Failed to read {content_key}", self._fetch_row, content_key
        )
        if content_row is None:
            return feed, None
        return feed, self._feed_from_row(content_row)

    async def list(self) -> list[ContentId]:
        return await self._run("Failed to list feeds", self._list_keys)

    async def set_feed_info(
        self, key: ContentId, length: int, content_key: ContentId | None = None
    ) -> None:
        """Record a feed's declared length and, for meta feeds, its content feed.

        Args:
            key: Tracked feed key
            length: Number of blocks in the feed
            content_key: Key of the content feed described by this feed

        Raises:
            NotFound: If the feed is not tracked
        """
        key = self._validate_key(key)
        if length < 0:
            raise StoreError(f"Invalid length for {key}: {length}")
        if content_key is not None:
            content_key = self._validate_key(content_key)
        updated = await self._run(
            f"Failed to update {key}", self._update_info, key, length, content_key
        )
        if not updated:
            raise NotFound(key)
        await self._check_archived(key)

    async def put_block(self, key: ContentId, index: int, data: bytes) -> None:
        """Store one block of a tracked feed.

        Raises:
            NotFound: If the feed is not tracked
            StoreError: If the index is outside the declared length
        """
        key = self._validate_key(key)
        row = await self._run(f"Failed to read {key}", self._fetch_row, key)
        if row is None:
            raise NotFound(key)
        if index < 0 or index >= row["length"]:
            raise StoreError(f"Block {index} is outside feed {key} (length {row['length']})")
        await self._run(
            f"Failed to write block {index} of {key}", self._write_block, key, index, data
        )
        await self._check_archived(key)

    async def _check_archived(self, key: ContentId) -> None:
        feed_row = await self._run(f"Failed to update {key}", self._mark_archived, key)
        if feed_row is not None:
            logger.info(f"Feed archived {key}")
            await self.emit("archived", key, self._feed_from_row(feed_row))

    async def _run(self, failure: str, func: Callable[..., T], *args: Any) -> T:
        """Run blocking index or disk work off the event loop.

        Raises:
            StoreError: If SQLite or the filesystem fails
        """
        try:
            return await asyncio.to_thread(func, *args)
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"{failure}: {e}") from e

    def _init_storage(self) -> None:
        """Create the directory layout and index tables."""
        self.feeds_path.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS feeds (
                    key TEXT PRIMARY KEY,
                    content INTEGER NOT NULL,
                    length INTEGER NOT NULL DEFAULT 0,
                    byte_length INTEGER NOT NULL DEFAULT 0,
                    blocks INTEGER NOT NULL DEFAULT 0,
                    content_key TEXT,
                    parent_key TEXT,
                    archived INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP NOT NULL
                )
            """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS changes (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    type TEXT NOT NULL,
                    key TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """
            )
            conn.execute(
                "CREATE TABLE IF NOT EXISTS settings (name TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            conn.commit()

    @with_db_retry()
    def _load_changes_key(self) -> ContentId:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE name = 'changes_key'"
            ).fetchone()
            if row is not None:
                return to_content_id(row[0])
            key = to_content_id(os.urandom(32))
            conn.execute(
                "INSERT INTO settings (name, value) VALUES ('changes_key', ?)", (key,)
            )
            conn.commit()
            return key

    @with_db_retry()
    def _changes_feed(self, key: ContentId) -> ChangesFeed:
        with sqlite3.connect(self.db_path) as conn:
            count, size = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(LENGTH(type) + LENGTH(key)), 0) FROM changes"
            ).fetchone()
        return ChangesFeed(key=key, length=count, byte_length=size)

    @with_db_retry()
    def _insert_feed(self, key: ContentId, content: bool) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO feeds (key, content, created_at)
                VALUES (?, ?, ?)
            """,
                (key, int(content), _now()),
            )
            if cursor.rowcount == 0:
                return False
            self._record_change(conn, "add", key)
            conn.commit()
        return True

    @with_db_retry()
    def _delete_feed(self, key: ContentId) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT content_key FROM feeds WHERE key = ? AND parent_key IS NULL",
                (key,),
            ).fetchone()
            if row is None:
                return False
            keys = [key] + ([row[0]] if row[0] else [])
            conn.executemany("DELETE FROM feeds WHERE key = ?", [(k,) for k in keys])
            self._record_change(conn, "remove", key)
            conn.commit()

        for removed in keys:
            shutil.rmtree(self._feed_dir(removed), ignore_errors=True)
        return True

    @with_db_retry()
    def _update_info(
        self, key: ContentId, length: int, content_key: ContentId | None
    ) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT content FROM feeds WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return False
            conn.execute("UPDATE feeds SET length = ? WHERE key = ?", (length, key))
            # Content feeds are only followed for feeds added with content
            if content_key is not None and row[0]:
                conn.execute(
                    "UPDATE feeds SET content_key = ? WHERE key = ?", (content_key, key)
                )
                conn.execute(
                    """
                    INSERT OR IGNORE INTO feeds (key, content, parent_key, created_at)
                    VALUES (?, 0, ?, ?)
                """,
                    (content_key, key, _now()),
                )
            conn.commit()
        return True

    def _write_block(self, key: ContentId, index: int, data: bytes) -> None:
        block_path = self._feed_dir(key) / str(index)
        is_new = not block_path.exists()
        block_path.parent.mkdir(parents=True, exist_ok=True)
        block_path.write_bytes(data)
        if is_new:
            self._count_block(key, len(data))

    @with_db_retry()
    def _count_block(self, key: ContentId, size: int) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                UPDATE feeds SET blocks = blocks + 1, byte_length = byte_length + ?
                WHERE key = ?
            """,
                (size, key),
            )
            conn.commit()

    @with_db_retry()
    def _mark_archived(self, key: ContentId) -> sqlite3.Row | None:
        """Flip the archived flag once every declared block is present.

        Returns:
            The feed row if this call completed the feed, None otherwise
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                UPDATE feeds SET archived = 1
                WHERE key = ? AND archived = 0 AND length > 0 AND blocks >= length
            """,
                (key,),
            )
            if cursor.rowcount == 0:
                return None
            conn.commit()
            return conn.execute("SELECT * FROM feeds WHERE key = ?", (key,)).fetchone()

    @with_db_retry()
    def _fetch_row(self, key: str) -> sqlite3.Row | None:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            return conn.execute("SELECT * FROM feeds WHERE key = ?", (key,)).fetchone()

    @with_db_retry()
    def _list_keys(self) -> list[ContentId]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT key FROM feeds WHERE parent_key IS NULL ORDER BY created_at"
            ).fetchall()
        return [ContentId(row[0]) for row in rows]

    @staticmethod
    def _record_change(conn: sqlite3.Connection, change: str, key: ContentId) -> None:
        conn.execute(
            "INSERT INTO changes (type, key, created_at) VALUES (?, ?, ?)",
            (change, key, _now()),
        )

    def _feed_from_row(self, row: sqlite3.Row) -> LocalFeed:
        key = ContentId(row["key"])
        return LocalFeed(
            key=key,
            length=row["length"],
            byte_length=row["byte_length"],
            directory=self._feed_dir(key),
        )

    def _feed_dir(self, key: str) -> Path:
        return self.feeds_path / key[:2] / key

    @staticmethod
    def _validate_key(key: str | bytes) -> ContentId:
        try:
            return to_content_id(key)
        except ValueError as e:
            raise StoreError(str(e)) from e


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
