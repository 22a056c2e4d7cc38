"""Chat transports."""

from archive_bot.transport.base import Transport

__all__ = ["Transport"]
