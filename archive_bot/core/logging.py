"""Structured logging for the archive bot.

Log lines are rendered as JSON for production and as key/value pairs in
tests. Modules take a bound logger at import time::

    logger = get_logger().bind(module="coordinator")
"""

from logging import (
    CRITICAL,
    DEBUG,
    ERROR,
    INFO,
    WARNING,
    Logger,
    StreamHandler,
    getLogger,
)
from typing import cast

import structlog
from structlog import dev, processors, stdlib
from structlog.stdlib import BoundLogger
from structlog.types import Processor

LOG_LEVELS: dict[str, int] = {
    "debug": DEBUG,
    "info": INFO,
    "warning": WARNING,
    "error": ERROR,
    "critical": CRITICAL,
}

PACKAGE_LOGGER = "archive_bot"


def _shared_processors() -> list[Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S.%f"),
        processors.dict_tracebacks,
    ]


def configure_logging(
    testing: bool = False, level: str = "INFO", json_logs: bool = True
) -> None:
    """Configure structured logging for the bot.

    Args:
        testing: Whether the bot is running under the test suite
        level: Log level name (case-insensitive); unknown names mean INFO
        json_logs: Render log lines as JSON instead of key/value pairs
    """
    log_level = LOG_LEVELS.get(level.lower(), INFO)
    use_json = json_logs and not testing
    shared = _shared_processors()

    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *shared,
            processors.format_exc_info,
            processors.JSONRenderer() if use_json else processors.KeyValueRenderer(),
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(
        stdlib.ProcessorFormatter(
            processor=processors.JSONRenderer() if use_json else dev.ConsoleRenderer(),
            foreign_pre_chain=shared,
        )
    )

    # Records from the package propagate to the root handler
    package_logger: Logger = getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    package_logger.handlers = []

    root_logger: Logger = getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]


def get_logger() -> BoundLogger:
    """Get a configured logger instance.

    Returns:
        A structured logger instance.
    """
    return cast(BoundLogger, structlog.get_logger())
