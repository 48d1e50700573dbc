# telelog/handler.py
# A logging.Handler that turns log calls into TelegramLogRecords and hands
# them to the shared batch processor.

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from telelog.processor import BatchLogRecordProcessor
from telelog.records import LogLevel, TelegramLogRecord

MetadataProvider = Callable[[], Mapping[str, Any]]

# Loggers used by the shipping pipeline itself. Forwarding their records to
# Telegram would feed every export failure back into the queue.
INTERNAL_LOGGER_PREFIXES = ("telelog", "tgformat", "TeleBot")


def _is_internal(logger_name: str) -> bool:
    return any(
        logger_name == prefix or logger_name.startswith(prefix + ".")
        for prefix in INTERNAL_LOGGER_PREFIXES
    )


class TelegramLoggingHandler(logging.Handler):
    """
    Sends log records to Telegram through a shared BatchLogRecordProcessor.

    Each handler carries its own threshold, default metadata and optional
    metadata provider; several handlers can share one processor. Metadata
    layers are merged per call as handler defaults, then provider values,
    then call-site values, with later layers winning.

    Call-site metadata is passed through `extra`:

        logger.warning("Disk almost full", extra={"metadata": {"free_mb": 120}})
    """

    def __init__(
        self,
        processor: BatchLogRecordProcessor,
        label: str = "",
        level: Union[LogLevel, int, str] = LogLevel.INFO,
        metadata: Optional[Mapping[str, Any]] = None,
        metadata_provider: Optional[MetadataProvider] = None,
    ):
        level = LogLevel.parse(level)
        super().__init__(level=level)
        self.label = label
        self.processor = processor
        self._log_level = level
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.metadata_provider = metadata_provider

    @property
    def log_level(self) -> LogLevel:
        return self._log_level

    @log_level.setter
    def log_level(self, value: Union[LogLevel, int, str]):
        self.setLevel(value)

    def setLevel(self, level):
        # Keep logging.Handler's numeric level and our LogLevel in step.
        self._log_level = LogLevel.parse(level)
        super().setLevel(self._log_level)

    def get_metadata(self, key: str) -> Any:
        return self.metadata.get(key)

    def set_metadata(self, key: str, value: Any):
        if value is None:
            self.metadata.pop(key, None)
        else:
            self.metadata[key] = value

    def effective_metadata(self, call_metadata: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        merged = dict(self.metadata)
        if self.metadata_provider is not None:
            merged.update(self.metadata_provider() or {})
        if call_metadata:
            merged.update(call_metadata)
        return merged

    def log(
        self,
        level: Union[LogLevel, int, str],
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        source: Optional[str] = None,
        file: str = "",
        function: str = "",
        line: int = 0,
        exception: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ):
        level = LogLevel.parse(level)
        if level < self._log_level:
            return

        record = TelegramLogRecord(
            message=str(message),
            level=level,
            metadata=self.effective_metadata(metadata),
            timestamp=timestamp or datetime.now(timezone.utc),
            source=source if source is not None else self.label,
            file=file,
            function=function,
            line=line,
            exception=exception,
        )
        # Non-blocking; the processor's task does the network work.
        self.processor.on_emit(record)

    def emit(self, record: logging.LogRecord):
        if _is_internal(record.name):
            return
        try:
            exception = None
            if record.exc_info:
                exception = "".join(traceback.format_exception(*record.exc_info))
            elif record.exc_text:
                exception = record.exc_text

            call_metadata = getattr(record, "metadata", None)
            self.log(
                level=LogLevel.from_levelno(record.levelno),
                message=record.getMessage(),
                metadata=call_metadata if isinstance(call_metadata, Mapping) else None,
                source=record.name,
                file=record.pathname,
                function=record.funcName or "",
                line=record.lineno,
                exception=exception,
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
            )
        except Exception:
            self.handleError(record)
