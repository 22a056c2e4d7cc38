"""Command line entry point for the archive bot."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from archive_bot.coordinator import Coordinator
from archive_bot.core.config import Settings
from archive_bot.core.logging import configure_logging, get_logger
from archive_bot.discovery import LoggingDiscovery
from archive_bot.notifier import Notifier
from archive_bot.store.base import StoreOpenError
from archive_bot.store.local import LocalArchiveStore
from archive_bot.transport.base import Transport

logger = get_logger().bind(module="main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archive-bot",
        description="Archive hypercores on request from a chat channel",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Archive into ./archive and take commands in #dat-archive
  python -m archive_bot --cwd archive --channel dat-archive

  # Chat commands
  !add <key>        archive a feed and its content
  !track <key>      archive a feed without its content
  !rm <key>         stop archiving a feed
  !status [<key>]   uptime, or progress of one feed
""",
    )
    parser.add_argument("--port", "-p", type=int, help="Replication port")
    parser.add_argument("--cwd", "-d", help="Directory to archive into")
    parser.add_argument("--channel", "-c", help="Chat channel to join")
    parser.add_argument("--name", "-n", help="Bot nickname")
    parser.add_argument("--server", "-s", help="Chat server address")
    parser.add_argument("--irc-port", type=int, dest="irc_port", help="Chat server port")
    parser.add_argument(
        "--announce",
        "-a",
        action="store_true",
        default=None,
        help="Serve the archive without joining the swarm",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Overlay command line flags on environment settings."""
    overrides: dict[str, Any] = {
        "PORT": args.port,
        "CWD": args.cwd,
        "BOT_NAME": args.name,
        "SERVER": args.server,
        "IRC_PORT": args.irc_port,
        "ANNOUNCE": args.announce,
    }
    update = {name: value for name, value in overrides.items() if value is not None}
    if args.verbose:
        update["LOG_LEVEL"] = "DEBUG"
    if args.channel is not None:
        update["CHANNEL"] = args.channel
    merged = (base or Settings()).model_dump()
    merged.update(update)
    return Settings(**merged)


def create_transport(settings: Settings) -> Transport | None:
    if settings.CHANNEL is None:
        return None

    from archive_bot.transport.irc import IRCTransport

    return IRCTransport(
        server=settings.SERVER,
        port=settings.IRC_PORT,
        nickname=settings.BOT_NAME,
        channel=settings.CHANNEL,
        retry_count=settings.IRC_RETRY_COUNT,
    )


async def run(settings: Settings) -> int:
    """Open the archive, connect to chat and serve commands until cancelled.

    Returns:
        Process exit code
    """
    store_path = Path(settings.CWD)
    store = LocalArchiveStore(store_path)
    try:
        changes = await store.open()
    except StoreOpenError:
        logger.exception(f"Cannot open archive in {store_path}")
        return 1

    transport = create_transport(settings)
    coordinator = Coordinator(
        store=store,
        notifier=Notifier(transport),
        bot_name=settings.BOT_NAME,
        channel=settings.CHANNEL,
        discovery=None if settings.ANNOUNCE else LoggingDiscovery(),
        port=settings.PORT,
        join_delay_max=settings.JOIN_DELAY_MAX,
    )
    coordinator.attach(transport)

    try:
        if settings.ANNOUNCE:
            logger.info("Announce mode, not joining the swarm")
        else:
            await coordinator.join_archived_feeds(changes)
            logger.info(f"Announcing feeds on port {settings.PORT}")

        if transport is not None:
            try:
                await transport.connect()
            except Exception:
                logger.exception(f"Cannot connect to chat server {settings.SERVER}")
                return 1

        await asyncio.Event().wait()
    finally:
        await coordinator.close()
        if transport is not None:
            await transport.disconnect()
        await store.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the archive bot CLI."""
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0


if __name__ == "__main__":
    sys.exit(main())
