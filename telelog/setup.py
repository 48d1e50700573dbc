# telelog/setup.py
# Wires the Telegram bot, exporter, shared processor and logging handler together.

import logging
from typing import Any, Mapping, Optional, Tuple, Union

from telebot.async_telebot import AsyncTeleBot

from config import config
from telelog.exporter import TelegramLogRecordExporter
from telelog.handler import MetadataProvider, TelegramLoggingHandler
from telelog.processor import BatchLogRecordProcessor
from telelog.records import LogLevel
from tgformat.formatter import LogRecordFormatter

logger = logging.getLogger(__name__)


def create_bot(token: str) -> AsyncTeleBot:
    # parse_mode is set per message by the exporter.
    return AsyncTeleBot(token)


def create_handler(
    processor: BatchLogRecordProcessor,
    label: str,
    level: Union[LogLevel, int, str] = LogLevel.INFO,
    metadata: Optional[Mapping[str, Any]] = None,
    metadata_provider: Optional[MetadataProvider] = None,
) -> TelegramLoggingHandler:
    """Builds another handler that feeds the same processor."""
    return TelegramLoggingHandler(
        processor,
        label=label,
        level=level,
        metadata=metadata,
        metadata_provider=metadata_provider,
    )


def setup_telegram_logging(
    bot: AsyncTeleBot,
    chat_id: str,
    level: Union[LogLevel, int, str] = config.LOG_LEVEL,
    target_logger: Optional[logging.Logger] = None,
    metadata: Optional[Mapping[str, Any]] = None,
    metadata_provider: Optional[MetadataProvider] = None,
    formatter: Optional[LogRecordFormatter] = None,
    **processor_options: Any,
) -> Tuple[BatchLogRecordProcessor, TelegramLoggingHandler]:
    """
    Attaches a TelegramLoggingHandler to `target_logger` (the root logger by default).

    Returns the processor and the handler. The caller must run
    `processor.run()` as a task and await `processor.shutdown()` on exit,
    otherwise nothing is ever sent.
    """
    if formatter is None:
        formatter = LogRecordFormatter(timezone=config.LOG_TIMEZONE or None)
    exporter = TelegramLogRecordExporter(
        bot, chat_id, formatter=formatter, request_timeout=config.REQUEST_TIMEOUT
    )
    processor = BatchLogRecordProcessor(exporter, **processor_options)

    target_logger = target_logger or logging.getLogger()
    handler = create_handler(
        processor,
        label=target_logger.name,
        level=level,
        metadata=metadata,
        metadata_provider=metadata_provider,
    )
    target_logger.addHandler(handler)
    logger.info(f"Telegram log handler configured for chat {chat_id} at level {handler.log_level.name}.")
    return processor, handler
