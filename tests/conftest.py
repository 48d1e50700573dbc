"""
Shared fixtures for the Telegram log shipping tests.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from telelog.records import LogLevel, TelegramLogRecord


@pytest.fixture
def make_record():
    """Factory for TelegramLogRecord with sensible defaults."""

    def _make_record(**overrides) -> TelegramLogRecord:
        values = {
            "message": "Hello",
            "level": LogLevel.INFO,
            "metadata": {},
            "timestamp": datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc),
            "source": "tests",
            "file": "a.txt",
            "function": "run",
            "line": 10,
        }
        values.update(overrides)
        return TelegramLogRecord(**values)

    return _make_record


@pytest.fixture
def mock_bot():
    """AsyncTeleBot stand-in whose send_message always succeeds."""
    bot = MagicMock()
    bot.send_message = AsyncMock(return_value=MagicMock(message_id=1))
    return bot


@pytest.fixture
def mock_exporter():
    """Exporter stand-in that records every batch it receives."""
    exporter = MagicMock()
    exporter.batches = []

    async def _export(batch):
        exporter.batches.append(list(batch))

    exporter.export = AsyncMock(side_effect=_export)
    exporter.force_flush = AsyncMock()
    exporter.shutdown = AsyncMock()
    return exporter
