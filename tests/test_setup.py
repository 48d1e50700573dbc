"""
Unit tests for configuration checks and logging bootstrap.
"""

import logging
from unittest.mock import patch

import pytest

from config import Config, ConfigurationError
from telelog.handler import TelegramLoggingHandler
from telelog.processor import BatchLogRecordProcessor
from telelog.records import LogLevel
from telelog.setup import create_bot, create_handler, setup_telegram_logging


class TestConfig:
    """Tests for Config.require_telegram."""

    def test_missing_values_raise(self):
        """Both missing variables are named in the error."""
        cfg = Config()
        cfg.BOT_TOKEN = ""
        cfg.CHAT_ID = ""

        with pytest.raises(ConfigurationError) as exc_info:
            cfg.require_telegram()

        assert exc_info.value.missing == ["BOT_TOKEN", "CHAT_ID"]
        assert "BOT_TOKEN" in str(exc_info.value)

    def test_missing_chat_only(self):
        """Only the missing variable is reported."""
        cfg = Config()
        cfg.BOT_TOKEN = "123:abc"
        cfg.CHAT_ID = ""

        with pytest.raises(ConfigurationError) as exc_info:
            cfg.require_telegram()

        assert exc_info.value.missing == ["CHAT_ID"]

    def test_complete_config_passes(self):
        """A token and a chat id are enough."""
        cfg = Config()
        cfg.BOT_TOKEN = "123:abc"
        cfg.CHAT_ID = "-100123"

        cfg.require_telegram()


class TestSetup:
    """Tests for setup_telegram_logging and create_handler."""

    @pytest.fixture
    def target_logger(self):
        logger = logging.getLogger("tests.setup")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False
        yield logger
        logger.handlers.clear()

    def test_create_bot(self):
        """The bot is built from the token alone."""
        with patch("telelog.setup.AsyncTeleBot") as bot_cls:
            bot = create_bot("123:abc")

        bot_cls.assert_called_once_with("123:abc")
        assert bot is bot_cls.return_value

    def test_attaches_handler(self, mock_bot, target_logger):
        """The handler is added to the target logger and wired to the processor."""
        processor, handler = setup_telegram_logging(
            mock_bot, "-100123/4", level="warning", target_logger=target_logger, max_queue_size=10
        )

        assert handler in target_logger.handlers
        assert handler.processor is processor
        assert handler.log_level is LogLevel.WARNING
        assert handler.label == "tests.setup"
        assert processor.max_queue_size == 10
        assert processor.exporter.chat_id == "-100123"
        assert processor.exporter.thread_id == 4

    @pytest.mark.asyncio
    async def test_logged_record_reaches_bot(self, mock_bot, target_logger):
        """A logged record is sent once the processor shuts down."""
        processor, _ = setup_telegram_logging(mock_bot, "42", level="info", target_logger=target_logger)

        target_logger.info("Deployed")
        await processor.shutdown()

        mock_bot.send_message.assert_awaited_once()
        chat_id, text = mock_bot.send_message.await_args.args
        assert chat_id == "42"
        assert text.startswith("*INFO* \\| ")
        assert "\n\nDeployed\n\n" in text

    def test_create_handler_shares_processor(self, mock_exporter):
        """Handlers built from one processor feed it together."""
        processor = BatchLogRecordProcessor(mock_exporter)

        first = create_handler(processor, "a")
        second = create_handler(processor, "b", level=LogLevel.ERROR)

        assert isinstance(first, TelegramLoggingHandler)
        assert first.processor is second.processor
        assert second.log_level is LogLevel.ERROR
