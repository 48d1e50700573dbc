# telelog/records.py
# Severity levels and the immutable record that travels from the logging
# handler through the batch processor to the Telegram exporter.

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union


class LogLevel(IntEnum):
    # Values line up with the stdlib numeric levels so thresholds compare directly.
    TRACE = 5
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    NOTICE = 25
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_levelno(cls, levelno: int) -> "LogLevel":
        """Maps a stdlib numeric level onto the closest member at or below it."""
        matched = cls.TRACE
        for member in cls:
            if member.value <= levelno:
                matched = member
        return matched

    @classmethod
    def parse(cls, value: Union["LogLevel", int, str]) -> "LogLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls.from_levelno(value)
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None


# Register the two levels the stdlib lacks so `%(levelname)s` prints them too.
logging.addLevelName(LogLevel.TRACE, "TRACE")
logging.addLevelName(LogLevel.NOTICE, "NOTICE")


@dataclass(frozen=True)
class TelegramLogRecord:
    """One logging call, captured at the moment it happened."""

    message: str
    level: LogLevel
    metadata: Mapping[str, Any]
    timestamp: datetime
    source: str
    file: str
    function: str
    line: int
    exception: Optional[str] = field(default=None)

    def __post_init__(self):
        # Keep a read-only copy of the caller's mapping.
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
