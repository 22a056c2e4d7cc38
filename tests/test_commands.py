"""Tests for the chat command grammar."""

import pytest

from archive_bot.commands import (
    Command,
    InvalidKey,
    NotAddressed,
    Operation,
    ParseError,
    Verb,
    is_content_id,
    parse,
    to_content_id,
)
from tests.fakes import BOT_NAME, META_KEY, OTHER_KEY


class TestParsePrefixedCommands:
    """Commands prefixed with ``!``."""

    @pytest.mark.parametrize("key", [META_KEY, OTHER_KEY, "f" * 64, "0" * 64])
    def test_should_parse_add_with_valid_key(self, key: str) -> None:
        assert parse(f"!add {key}", BOT_NAME) == Command(command="add", key=key)

    @pytest.mark.parametrize(
        "key",
        [
            "a" * 63,
            "a" * 65,
            "A" * 64,
            "g" * 64,
            "a" * 32 + "-" * 32,
            f"{'a' * 64} extra",
        ],
    )
    def test_should_reject_invalid_key(self, key: str) -> None:
        with pytest.raises(InvalidKey):
            parse(f"!add {key}", BOT_NAME)

    def test_should_parse_bare_status(self) -> None:
        assert parse("!status", BOT_NAME) == Command(command="status", key=None)

    def test_should_trim_surrounding_whitespace(self) -> None:
        assert parse(f"   !rm {META_KEY}  \n", BOT_NAME) == Command("rm", META_KEY)

    def test_should_accept_unknown_command_words(self) -> None:
        assert parse("!dance", BOT_NAME) == Command(command="dance")


class TestParseAddressedCommands:
    """Commands addressed to the bot by nickname."""

    def test_should_parse_status_addressed_to_bot(self) -> None:
        assert parse(f"{BOT_NAME}: status", BOT_NAME) == Command("status", None)

    def test_should_match_prefixed_and_addressed_status(self) -> None:
        assert parse(f"{BOT_NAME}: status", BOT_NAME) == parse("!status", BOT_NAME)

    def test_should_strip_numeric_nick_suffix(self) -> None:
        assert parse(f"{BOT_NAME}42: add {META_KEY}", BOT_NAME) == Command(
            "add", META_KEY
        )

    def test_should_accept_prefix_after_address(self) -> None:
        assert parse(f"{BOT_NAME}: !add {META_KEY}", BOT_NAME) == Command(
            "add", META_KEY
        )

    @pytest.mark.parametrize(
        "message",
        [
            "status",
            f"add {META_KEY}",
            "someone-else: status",
            f"someone-else: add {META_KEY}",
            "archive-bot-fan: status",
            "",
        ],
    )
    def test_should_ignore_messages_not_for_bot(self, message: str) -> None:
        with pytest.raises(NotAddressed):
            parse(message, BOT_NAME)

    def test_parse_errors_share_a_base_class(self) -> None:
        assert issubclass(NotAddressed, ParseError)
        assert issubclass(InvalidKey, ParseError)


class TestToOperation:
    """Mapping parsed commands onto operations."""

    @pytest.mark.parametrize(
        ("word", "verb"),
        [
            ("track", Verb.TRACK),
            ("add", Verb.ADD),
            ("rm", Verb.REMOVE),
            ("remove", Verb.REMOVE),
            ("status", Verb.STATUS),
        ],
    )
    def test_should_map_known_words_with_key(self, word: str, verb: Verb) -> None:
        assert Command(word, META_KEY).to_operation() == Operation(verb, META_KEY)

    def test_should_map_status_without_key(self) -> None:
        assert Command("status").to_operation() == Operation(Verb.STATUS, None)

    @pytest.mark.parametrize("word", ["track", "add", "rm", "remove"])
    def test_should_ignore_key_commands_without_key(self, word: str) -> None:
        assert Command(word).to_operation() is None

    @pytest.mark.parametrize("word", ["dance", "ADD", "", "stat"])
    def test_should_ignore_unknown_words(self, word: str) -> None:
        assert Command(word, META_KEY).to_operation() is None


class TestContentIds:
    """Key canonicalization."""

    def test_should_accept_lowercase_hex(self) -> None:
        assert is_content_id(META_KEY)
        assert not is_content_id(META_KEY.upper())

    def test_should_canonicalize_bytes(self) -> None:
        assert to_content_id(bytes.fromhex(OTHER_KEY)) == OTHER_KEY

    def test_should_lowercase_strings(self) -> None:
        assert to_content_id(OTHER_KEY.upper()) == OTHER_KEY

    def test_should_reject_short_keys(self) -> None:
        with pytest.raises(ValueError):
            to_content_id(b"\x00" * 16)
