"""IRC transport on top of the ``irc`` package's asyncio reactor."""

import asyncio
from collections.abc import Coroutine
from typing import Any

import irc.client
import irc.client_aio

from archive_bot.core.logging import get_logger
from archive_bot.transport.base import Transport

logger = get_logger().bind(module="irc_transport")


class IRCTransport(Transport):
    """Joins one channel and relays public and private messages."""

    def __init__(
        self,
        server: str,
        port: int,
        nickname: str,
        channel: str,
        retry_count: int = 1000,
        retry_delay: float = 5.0,
    ) -> None:
        super().__init__()
        self.server = server
        self.port = port
        self.nickname = nickname
        self.channel = channel
        self.retry_count = retry_count
        self.retry_delay = retry_delay
        self._reactor: irc.client_aio.AioReactor | None = None
        self._connection: irc.client_aio.AioConnection | None = None
        self._closing = False
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.is_connected()

    async def connect(self) -> None:
        """Connect to the server, retrying until ``retry_count`` is exhausted.

        Raises:
            irc.client.ServerConnectionError: If every attempt fails
        """
        logger.info(f"Connecting to IRC {self.server} as {self.nickname}")
        self._closing = False
        self._reactor = irc.client_aio.AioReactor(loop=asyncio.get_running_loop())
        for event in ("welcome", "pubmsg", "privmsg", "disconnect"):
            self._reactor.add_global_handler(event, getattr(self, f"_on_{event}"))
        self._connection = self._reactor.server()
        await self._open()

    async def _open(self) -> None:
        if self._connection is None:
            raise irc.client.ServerNotConnectedError("Connection not created")
        for attempt in range(self.retry_count + 1):
            try:
                await self._connection.connect(self.server, self.port, self.nickname)
                return
            except irc.client.ServerConnectionError as e:
                if attempt == self.retry_count:
                    raise
                logger.warning(
                    f"IRC connection attempt {attempt + 1}/{self.retry_count + 1} "
                    f"failed: {e}. Retrying in {self.retry_delay}s..."
                )
                await asyncio.sleep(self.retry_delay)

    async def say(self, destination: str, text: str) -> None:
        if self._connection is None:
            raise irc.client.ServerNotConnectedError("Not connected")
        for line in text.splitlines():
            self._connection.privmsg(destination, line)

    async def disconnect(self) -> None:
        self._closing = True
        if self._connection is not None and self._connection.is_connected():
            self._connection.disconnect("Archive bot shutting down")
        for task in list(self._tasks):
            task.cancel()

    def _on_welcome(self, connection: Any, event: Any) -> None:
        logger.info("Connected to IRC, listening for messages")
        connection.join(self.channel)
        self._spawn(self.dispatch_registered())

    def _on_pubmsg(self, connection: Any, event: Any) -> None:
        self._spawn(
            self.dispatch_message(event.source.nick, event.target, event.arguments[0])
        )

    def _on_privmsg(self, connection: Any, event: Any) -> None:
        self._spawn(
            self.dispatch_message(event.source.nick, event.target, event.arguments[0])
        )

    def _on_disconnect(self, connection: Any, event: Any) -> None:
        if self._closing:
            return
        logger.warning(f"Disconnected from IRC {self.server}, reconnecting")
        self._spawn(self._open())

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"IRC handler failed: {task.exception()}")
