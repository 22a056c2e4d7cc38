"""Chat command grammar.

Messages are either prefixed with ``!`` (``!add <key>``) or addressed to the
bot by nickname (``archive-bot: add <key>``). Everything after the last ``:``
is the command text: a bare word, or a word followed by a single content key.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import NewType

ContentId = NewType("ContentId", str)

# Hypercore keys are 32 bytes, rendered as 64 lowercase hex characters
_KEY_PATTERN = re.compile(r"^[0-9a-f]{64}$")
_NICK_SUFFIX = re.compile(r"\d+$")


class ParseError(Exception):
    """Raised when a chat line is not a command for this bot."""


class NotAddressed(ParseError):
    """The line is neither ``!``-prefixed nor addressed to the bot."""


class InvalidKey(ParseError):
    """The command argument is not a canonical content key."""


def is_content_id(value: str) -> bool:
    """Return True if ``value`` is a canonical 64-character lowercase hex key."""
    return bool(_KEY_PATTERN.match(value))


def to_content_id(value: str | bytes) -> ContentId:
    """Canonicalize a feed key to its lowercase hex form.

    Args:
        value: Raw key bytes or a hex string in any case

    Returns:
        The canonical content id

    Raises:
        ValueError: If the value is not a 32-byte key
    """
    text = value.hex() if isinstance(value, (bytes, bytearray)) else value.lower()
    if not is_content_id(text):
        raise ValueError(f"Invalid key format: expected 64 hex characters, got: {text}")
    return ContentId(text)


class Verb(Enum):
    """Commands understood by the bot."""

    TRACK = "track"
    ADD = "add"
    REMOVE = "remove"
    STATUS = "status"


_VERBS: dict[str, Verb] = {
    "track": Verb.TRACK,
    "add": Verb.ADD,
    "rm": Verb.REMOVE,
    "remove": Verb.REMOVE,
    "status": Verb.STATUS,
}


@dataclass(frozen=True)
class Operation:
    """A command the coordinator acts on.

    ``key`` is always set for track, add and remove. A status operation
    without a key reports on the whole archive.
    """

    verb: Verb
    key: ContentId | None = None


@dataclass(frozen=True)
class Command:
    """A parsed chat line before it is mapped to an operation."""

    command: str
    key: ContentId | None = None

    def to_operation(self) -> Operation | None:
        """Map the command word onto an operation.

        Returns:
            The operation, or None for unknown words and for key-taking
            commands that were sent without a key
        """
        verb = _VERBS.get(self.command)
        match verb:
            case Verb.STATUS:
                return Operation(verb, self.key)
            case Verb.TRACK | Verb.ADD | Verb.REMOVE if self.key is not None:
                return Operation(verb, self.key)
            case _:
                return None


def parse(message: str, bot_name: str) -> Command:
    """Parse a raw chat line.

    Args:
        message: The line as received from the chat transport
        bot_name: The bot's configured nickname

    Returns:
        The parsed command

    Raises:
        NotAddressed: If the line is not meant for the bot
        InvalidKey: If the argument is not a canonical content key
    """
    message = message.strip()

    if message.startswith("!"):
        message = message[1:]
    else:
        name = message.split(":", 1)[0] if ":" in message else ""
        name = _NICK_SUFFIX.sub("", name.strip())
        if name != bot_name:
            raise NotAddressed(message)

    message = message.split(":")[-1].strip()
    # "archive-bot: !add <key>" carries the prefix after the address
    message = message.removeprefix("!")
    if " " not in message:
        return Command(command=message)

    command, key = message.split(" ", 1)
    if not is_content_id(key):
        raise InvalidKey(key)
    return Command(command=command, key=ContentId(key))
