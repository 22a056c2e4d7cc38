"""Human-readable replies and their delivery to chat."""

import math

from archive_bot.core.logging import get_logger
from archive_bot.progress import ProgressStatus
from archive_bot.transport.base import Transport

logger = get_logger().bind(module="notifier")

_BYTE_UNITS = ["B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]

# Largest first, in nanoseconds
_TIME_UNITS = [
    ("w", 604_800 * 10**9),
    ("d", 86_400 * 10**9),
    ("h", 3_600 * 10**9),
    ("m", 60 * 10**9),
    ("s", 10**9),
    ("ms", 10**6),
    ("μs", 10**3),
    ("ns", 1),
]


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` for whole values."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def pretty_bytes(size: int) -> str:
    """Format a byte count with decimal units and three significant digits."""
    if size < 1:
        return f"{size} B"
    exponent = min(int(math.log10(size) // 3), len(_BYTE_UNITS) - 1)
    scaled = float(f"{size / 1000**exponent:.3g}")
    return f"{format_number(scaled)} {_BYTE_UNITS[exponent]}"


def pretty_time(elapsed_ns: int) -> str:
    """Format a duration as space-separated units, e.g. ``1h 2m 3s 4ms``."""
    parts = []
    remaining = elapsed_ns
    for name, unit in _TIME_UNITS:
        count, remaining = divmod(remaining, unit)
        if count:
            parts.append(f"{count}{name}")
    return " ".join(parts) if parts else "0ns"


def status_message(key: str, status: ProgressStatus) -> str:
    return (
        f"Status {key}: need {status.need}, have {status.have}, "
        f"%{format_number(status.percentage)}"
    )


def archived_message(key: str, byte_length: int) -> str:
    return f"{key} has been fully archived ({pretty_bytes(byte_length)})"


def uptime_message(elapsed_ns: int, count: int) -> str:
    return f"Uptime: {pretty_time(elapsed_ns)}. Archiving {count} hypercores"


def resolve_channel(
    sender: str, destination: str, bot_name: str, default_channel: str | None
) -> str:
    """Pick where replies to a message go.

    Private messages (sent to the bot's own nick) are answered privately;
    everything else goes to the shared channel.
    """
    if destination == bot_name or default_channel is None:
        return sender
    return default_channel


class Notifier:
    """Sends replies through the chat transport, or logs them without one."""

    def __init__(self, transport: Transport | None = None) -> None:
        self.transport = transport

    async def notify(
        self, error: BaseException | None, channel: str, message: str | None = None
    ) -> None:
        """Deliver a reply; errors replace the message. Never raises.

        Args:
            error: Failure to report instead of ``message``
            channel: Nick or channel the reply is addressed to
            message: Reply text
        """
        text = f"Error: {error}" if error is not None else message
        if text is None:
            return

        if self.transport is None or not self.transport.connected:
            logger.info(f"No chat connection, not sending to {channel}: {text}")
            return

        try:
            await self.transport.say(channel, text)
        except Exception as e:
            logger.error(f"Failed to send message to {channel}: {e}")
