# tgformat/formatter.py
# Turns log records into Telegram MarkdownV2 messages.

import re
from datetime import tzinfo
from typing import Any, Callable, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from telelog.records import TelegramLogRecord

# Characters Telegram reserves in MarkdownV2. The backslash is deliberately absent.
MARKDOWN_V2_RESERVED = "_*[]()~`>#+-=|{}.!"
_RESERVED_PATTERN = re.compile("([" + re.escape(MARKDOWN_V2_RESERVED) + "])")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"

# Telegram refuses sendMessage texts longer than this.
TELEGRAM_MAX_MESSAGE_LENGTH = 4096
TRUNCATION_MARK = "…"


def escape_markdown_v2(text: Any) -> str:
    # One pass over the input, so inserted backslashes are never escaped again.
    return _RESERVED_PATTERN.sub(r"\\\1", str(text))


def escape_code_block(text: Any) -> str:
    # Inside ``` a bare backslash could escape the closing fence.
    return escape_markdown_v2(str(text).replace("\\", "\\\\"))


def _close_dangling_escape(text: str) -> str:
    # An odd run of trailing backslashes would escape whatever follows the cut.
    trailing = len(text) - len(text.rstrip("\\"))
    return text[:-1] if trailing % 2 else text


def _stringify(value: Any) -> str:
    # Nested mappings get sorted keys so the rendered message is deterministic.
    if isinstance(value, Mapping):
        pairs = ", ".join(f"{key}: {_stringify(value[key])}" for key in sorted(value, key=str))
        return "{" + pairs + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_stringify(item) for item in value) + "]"
    return str(value)


def _fit(raw: str, render: Callable[[str], str], budget: int, keep_tail: bool = False) -> str:
    """
    Renders the longest head (or tail) of `raw` that fits in `budget` characters,
    marking the cut. The raw text is cut before rendering, so escape sequences
    are never split. Returns "" when nothing useful fits.
    """
    rendered = render(raw)
    if len(rendered) <= budget:
        return rendered
    budget -= len(TRUNCATION_MARK)
    size = min(len(raw), budget)
    while size > 0:
        piece = render(raw[-size:] if keep_tail else raw[:size])
        if len(piece) <= budget:
            return TRUNCATION_MARK + piece if keep_tail else piece + TRUNCATION_MARK
        # Each dropped raw character shortens the rendering by at least one.
        size -= len(piece) - budget
    return ""


def _block(title: str, content: str) -> str:
    if not content:
        return ""
    return f"\n\n*{title}:*\n```\n{content}\n```"


class LogRecordFormatter:
    """
    Renders a TelegramLogRecord as a single MarkdownV2 message:

        *LEVEL* \\| 2024-05-01 12:00:00 +0000

        message body

        *Metadata:*
        ```
        key: value
        ```

        file.py:42 \\- `function`

    Every field taken from the record is escaped except the message body,
    which is passed through untouched unless `escape_message` is set. Callers
    that log plain text containing reserved characters should enable it.

    Messages longer than `max_message_length` are shortened: the exception
    block first, then the metadata block, then the body. The header and the
    source line are always kept.
    """

    def __init__(
        self,
        timezone: Optional[Union[tzinfo, str]] = None,
        escape_message: bool = False,
        max_exception_length: int = 3000,
        max_message_length: int = TELEGRAM_MAX_MESSAGE_LENGTH,
    ):
        if isinstance(timezone, str):
            timezone = ZoneInfo(timezone) if timezone else None
        self.timezone = timezone
        self.escape_message = escape_message
        self.max_exception_length = max_exception_length
        self.max_message_length = max_message_length

    def format_timestamp(self, record: TelegramLogRecord) -> str:
        # astimezone(None) converts to the process' local zone.
        return escape_markdown_v2(record.timestamp.astimezone(self.timezone).strftime(TIMESTAMP_FORMAT))

    @staticmethod
    def metadata_text(metadata: Mapping[str, Any]) -> str:
        # ": " and newlines are not reserved, so escaping the joined text
        # equals escaping every key and value on its own.
        return "\n".join(f"{key}: {_stringify(metadata[key])}" for key in sorted(metadata))

    def exception_text(self, exception: Optional[str]) -> str:
        if not exception:
            return ""
        # Keep the tail; the innermost frames and the error line matter most.
        return exception.rstrip("\n")[-self.max_exception_length:]

    @staticmethod
    def format_source_location(record: TelegramLogRecord) -> str:
        file_str = escape_markdown_v2(record.file)
        line_str = escape_markdown_v2(record.line)
        function_str = escape_markdown_v2(record.function)
        return f"{file_str}:{line_str} \\- `{function_str}`"

    def format(self, record: TelegramLogRecord) -> str:
        level_str = escape_markdown_v2(record.level.label.upper())
        header = f"*{level_str}* \\| {self.format_timestamp(record)}\n\n"
        footer = f"\n\n{self.format_source_location(record)}"

        render_body = escape_markdown_v2 if self.escape_message else _close_dangling_escape
        raw_message = str(record.message)
        raw_metadata = self.metadata_text(record.metadata)
        raw_exception = self.exception_text(record.exception)

        body = render_body(raw_message)
        metadata = escape_markdown_v2(raw_metadata)
        exception = escape_code_block(raw_exception)

        def overflow() -> int:
            length = len(header) + len(body) + len(footer)
            length += len(_block("Metadata", metadata)) + len(_block("Exception", exception))
            return length - self.max_message_length

        if overflow() > 0 and exception:
            exception = _fit(raw_exception, escape_code_block, len(exception) - overflow(), keep_tail=True)
        if overflow() > 0 and metadata:
            metadata = _fit(raw_metadata, escape_markdown_v2, len(metadata) - overflow())
        if overflow() > 0:
            body = _fit(raw_message, render_body, len(body) - overflow())

        return header + body + _block("Metadata", metadata) + _block("Exception", exception) + footer


_default_formatter = LogRecordFormatter()


def format_record(record: TelegramLogRecord) -> str:
    return _default_formatter.format(record)
