# telelog/exporter.py
# Delivers batches of log records to a Telegram chat, one message per record.

import asyncio
import logging
from typing import Iterable, Optional, Tuple

import aiohttp
from telebot.apihelper import ApiTelegramException
from telebot.async_telebot import AsyncTeleBot

from config import config
from telelog.records import TelegramLogRecord
from tgformat.formatter import LogRecordFormatter

logger = logging.getLogger(__name__)


class TelegramExportError(Exception):
    # Raised when a record in a batch could not be delivered.
    def __init__(
        self,
        sent: int,
        total: int,
        kind: str,
        description: str,
        error_code: Optional[int] = None,
    ):
        self.sent = sent
        self.total = total
        self.kind = kind
        self.description = description
        self.error_code = error_code
        super().__init__(
            f"Telegram export failed after {sent}/{total} records ({kind}): {description}"
        )


def parse_chat_target(target: str) -> Tuple[str, Optional[int]]:
    # "<chat_id>/<thread_id>" addresses a topic inside a forum supergroup.
    target = str(target)
    if "/" in target:
        chat_id, thread_id = target.split("/", 1)
        return chat_id, int(thread_id)
    return target, None


class TelegramLogRecordExporter:
    """
    Formats each record and sends it with `AsyncTeleBot.send_message`.

    Sends are awaited one after another. The first failure aborts the batch:
    the remaining records are not attempted and a TelegramExportError is
    raised to the caller, which owns any retry or drop policy.
    """

    def __init__(
        self,
        bot: AsyncTeleBot,
        chat_id: str,
        formatter: Optional[LogRecordFormatter] = None,
        parse_mode: str = config.PARSE_MODE,
        request_timeout: Optional[int] = None,
    ):
        self.bot = bot
        self.chat_id, self.thread_id = parse_chat_target(chat_id)
        self.formatter = formatter or LogRecordFormatter()
        self.parse_mode = parse_mode
        self.request_timeout = request_timeout

    async def export(self, batch: Iterable[TelegramLogRecord]) -> None:
        records = list(batch)
        for sent, record in enumerate(records):
            text = self.formatter.format(record)
            try:
                await self.bot.send_message(
                    self.chat_id,
                    text,
                    parse_mode=self.parse_mode,
                    message_thread_id=self.thread_id,
                    timeout=self.request_timeout,
                )
            except ApiTelegramException as e:
                # Telegram answered but refused the message, e.g. unparsable markdown.
                raise TelegramExportError(
                    sent, len(records), "rejected", e.description, e.error_code
                ) from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise TelegramExportError(
                    sent, len(records), "transport", str(e) or type(e).__name__
                ) from e
            except Exception as e:
                raise TelegramExportError(
                    sent, len(records), "unexpected", str(e) or type(e).__name__
                ) from e
        logger.debug(f"Exported {len(records)} log records to chat {self.chat_id}.")

    async def force_flush(self):
        # Nothing is buffered here.
        pass

    async def shutdown(self):
        # The bot session belongs to whoever created the bot.
        pass
