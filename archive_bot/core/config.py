"""Application configuration."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Archive bot settings.

    Environment variables (prefixed with ``ARCHIVE_BOT_``) will be loaded and
    validated using Pydantic. Command-line flags override these values.
    """

    app_name: str = "Archive Bot"
    version: str = "0.1.0"

    # Archive Store Settings
    CWD: str = "hypercore-archiver"
    PORT: int = Field(default=3282, ge=0, le=65535)
    ANNOUNCE: bool = False  # Serve the archive without joining the swarm
    JOIN_DELAY_MAX: float = Field(
        default=30.0, ge=0
    )  # Startup joins are staggered over this many seconds

    # Chat Settings
    CHANNEL: str | None = None  # No chat connection when unset
    BOT_NAME: str = "archive-bot"
    SERVER: str = "irc.freenode.net"
    IRC_PORT: int = Field(default=6667, ge=1, le=65535)
    IRC_RETRY_COUNT: int = 1000

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_prefix="ARCHIVE_BOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",  # Allow extra fields in environment
    )

    @model_validator(mode="after")
    def normalize_channel(self) -> "Settings":
        """Prefix bare channel names with ``#``."""
        if self.CHANNEL is not None:
            channel = self.CHANNEL.strip()
            if not channel:
                self.CHANNEL = None
            elif not channel.startswith(("#", "&")):
                self.CHANNEL = f"#{channel}"
            else:
                self.CHANNEL = channel
        return self

