"""Archive stores."""

from archive_bot.store.base import (
    ArchiveStore,
    Feed,
    NotFound,
    StoreError,
    StoreOpenError,
)
from archive_bot.store.local import LocalArchiveStore

__all__ = [
    "ArchiveStore",
    "Feed",
    "LocalArchiveStore",
    "NotFound",
    "StoreError",
    "StoreOpenError",
]
