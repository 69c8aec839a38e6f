"""Configuration settings for the revision bot."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))

# Revision settings
MIN_STAGE = 0
MAX_STAGE = 5
BLANK_MARKER = "___"
BLANK_FALLBACK_TEMPLATE = "Example with {blank}."


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'wordrev.db'}"))
    echo: bool = field(default_factory=lambda: os.getenv("DATABASE_ECHO", "false").lower() == "true")


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = field(default_factory=lambda: os.getenv("LOG_DIR", None))
    rotation: str = field(default_factory=lambda: os.getenv("LOG_ROTATION", "midnight"))
    interval: int = field(default_factory=lambda: int(os.getenv("LOG_INTERVAL", "1")))
    backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "7")))


@dataclass
class BotSettings:
    """Bot configuration settings."""
    token: str = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN", ""))


@dataclass
class RevisionSettings:
    """Revision session and word saving settings."""
    blank_marker: str = field(default_factory=lambda: os.getenv("BLANK_MARKER", BLANK_MARKER))
    blank_fallback_template: str = field(
        default_factory=lambda: os.getenv("BLANK_FALLBACK_TEMPLATE", BLANK_FALLBACK_TEMPLATE)
    )
    min_word_length: int = field(default_factory=lambda: int(os.getenv("MIN_WORD_LENGTH", "2")))
    max_word_length: int = field(default_factory=lambda: int(os.getenv("MAX_WORD_LENGTH", "50")))
    max_translation_length: int = field(
        default_factory=lambda: int(os.getenv("MAX_TRANSLATION_LENGTH", "100"))
    )


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    port: int = field(default_factory=lambda: int(os.getenv("METRICS_PORT", "0")))

    @property
    def enabled(self) -> bool:
        return self.port > 0


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    bot: BotSettings = field(default_factory=BotSettings)
    revision: RevisionSettings = field(default_factory=RevisionSettings)
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if not self.revision.blank_marker:
            raise ValueError("BLANK_MARKER cannot be empty")

        if "{blank}" not in self.revision.blank_fallback_template:
            raise ValueError("BLANK_FALLBACK_TEMPLATE must contain the {blank} placeholder")

        if self.revision.min_word_length < 1:
            raise ValueError("MIN_WORD_LENGTH must be positive")

        if self.revision.min_word_length > self.revision.max_word_length:
            raise ValueError("MIN_WORD_LENGTH cannot be greater than MAX_WORD_LENGTH")

        if self.revision.max_translation_length < 1:
            raise ValueError("MAX_TRANSLATION_LENGTH must be positive")

        if self.monitoring.port < 0:
            raise ValueError("METRICS_PORT cannot be negative")

    def validate_bot(self) -> None:
        """Validate the settings needed to connect to Telegram."""
        if not self.bot.token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required")


# Create global settings instance
settings = Settings()
settings.validate()
