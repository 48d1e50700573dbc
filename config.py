"""
Configuration settings for shipping log records to Telegram.
"""

import os
from dotenv import load_dotenv

# Load environment variables from the .env file
load_dotenv()


class ConfigurationError(Exception):
    # Raised when a setting required for sending messages is missing.
    def __init__(self, missing: list):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class Config:
    """
    Application configuration class.
    Reads settings from environment variables and defines constants.
    """

    # --- Telegram Bot Settings ---
    BOT_TOKEN: str = os.getenv("BOT_TOKEN", "")
    # A plain chat id, or "<chat_id>/<thread_id>" to post into a forum topic.
    CHAT_ID: str = os.getenv("CHAT_ID", "")

    PARSE_MODE: str = "MarkdownV2"
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", 30))  # seconds

    # --- Log Shipping Settings ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    # IANA zone name, e.g. "Europe/Moscow". Empty means the process' local time.
    LOG_TIMEZONE: str = os.getenv("LOG_TIMEZONE", "")

    # --- Batching Settings ---
    LOG_SCHEDULE_DELAY: float = float(os.getenv("LOG_SCHEDULE_DELAY", 1.0))  # seconds
    LOG_MAX_QUEUE_SIZE: int = int(os.getenv("LOG_MAX_QUEUE_SIZE", 2048))
    LOG_MAX_BATCH_SIZE: int = int(os.getenv("LOG_MAX_BATCH_SIZE", 512))
    LOG_EXPORT_TIMEOUT: float = float(os.getenv("LOG_EXPORT_TIMEOUT", 30.0))  # seconds

    def require_telegram(self) -> None:
        # Any code path that sends messages needs both values.
        missing = [name for name in ("BOT_TOKEN", "CHAT_ID") if not getattr(self, name)]
        if missing:
            raise ConfigurationError(missing)


# Create a global config instance to be used throughout the application
config = Config()
