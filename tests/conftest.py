"""Test configuration."""

import os
from collections.abc import Generator

import pytest
from pytest import Config

from archive_bot.core.logging import configure_logging
from archive_bot.coordinator import Coordinator
from archive_bot.notifier import Notifier
from tests.fakes import BOT_NAME, CHANNEL, FakeStore, FakeTransport


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep ARCHIVE_BOT_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.startswith("ARCHIVE_BOT_"):
            monkeypatch.delenv(name)
    yield


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def coordinator(store: FakeStore, transport: FakeTransport) -> Coordinator:
    """Coordinator wired to the fake store and transport."""
    coordinator = Coordinator(
        store=store,
        notifier=Notifier(transport),
        bot_name=BOT_NAME,
        channel=CHANNEL,
    )
    coordinator.attach(transport)
    return coordinator
