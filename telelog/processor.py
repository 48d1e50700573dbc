# telelog/processor.py
# Buffers log records and hands them to an exporter in batches from a single
# long-lived asyncio task.

import asyncio
import logging
import threading
from collections import deque
from typing import List, Optional

from config import config
from telelog.exporter import TelegramLogRecordExporter
from telelog.records import TelegramLogRecord

logger = logging.getLogger(__name__)


class BatchLogRecordProcessor:
    """
    Shared ingest point for every TelegramLoggingHandler built from the same setup.

    `on_emit` may be called from any thread and never blocks. `run` must be
    awaited (usually as a task) on the event loop that owns the exporter's
    HTTP session. A batch whose export fails is logged and dropped.
    """

    def __init__(
        self,
        exporter: TelegramLogRecordExporter,
        max_queue_size: int = config.LOG_MAX_QUEUE_SIZE,
        schedule_delay: float = config.LOG_SCHEDULE_DELAY,
        max_export_batch_size: int = config.LOG_MAX_BATCH_SIZE,
        export_timeout: float = config.LOG_EXPORT_TIMEOUT,
        drop_oldest: bool = False,
    ):
        if max_queue_size <= 0 or max_export_batch_size <= 0:
            raise ValueError("Queue and batch sizes must be positive.")
        self.exporter = exporter
        self.max_queue_size = max_queue_size
        self.schedule_delay = schedule_delay
        self.max_export_batch_size = min(max_export_batch_size, max_queue_size)
        self.export_timeout = export_timeout
        self.drop_oldest = drop_oldest
        self.dropped = 0

        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._export_lock: Optional[asyncio.Lock] = None
        self._is_shutdown = False

    @property
    def pending(self) -> int:
        return len(self._queue)

    def on_emit(self, record: TelegramLogRecord) -> None:
        if self._is_shutdown:
            return
        with self._lock:
            if len(self._queue) >= self.max_queue_size:
                self.dropped += 1
                if not self.drop_oldest:
                    return
                self._queue.popleft()
            self._queue.append(record)
            batch_ready = len(self._queue) >= self.max_export_batch_size
        if batch_ready:
            self._notify()

    def _notify(self):
        loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wakeup.set)

    def _take_batch(self) -> List[TelegramLogRecord]:
        with self._lock:
            count = min(len(self._queue), self.max_export_batch_size)
            return [self._queue.popleft() for _ in range(count)]

    def _get_export_lock(self) -> asyncio.Lock:
        if self._export_lock is None:
            self._export_lock = asyncio.Lock()
        return self._export_lock

    async def _export_batch(self, batch: List[TelegramLogRecord]):
        try:
            await asyncio.wait_for(self.exporter.export(batch), timeout=self.export_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Export of {len(batch)} log records timed out after {self.export_timeout}s.")
        except Exception as e:
            logger.error(f"Dropping batch of {len(batch)} log records: {e}", exc_info=True)

    async def _export_pending(self):
        # Serialised so a flush and the run loop never export concurrently.
        async with self._get_export_lock():
            while True:
                batch = self._take_batch()
                if not batch:
                    break
                await self._export_batch(batch)

    async def run(self):
        """The processing loop. Cancel the task to stop it."""
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        logger.info(
            f"Log batch processor started. Delay: {self.schedule_delay}s, "
            f"batch size: {self.max_export_batch_size}."
        )
        # Records that arrived before the loop existed may already fill a batch.
        if self.pending >= self.max_export_batch_size:
            self._wakeup.set()
        try:
            while not self._is_shutdown:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=self.schedule_delay)
                except asyncio.TimeoutError:
                    pass
                self._wakeup.clear()
                await self._export_pending()
        except asyncio.CancelledError:
            logger.info("Log batch processor was cancelled.")
            self._is_shutdown = True
            await self.exporter.shutdown()
            raise
        finally:
            self._wakeup = None

    async def force_flush(self):
        await self._export_pending()
        await self.exporter.force_flush()

    async def shutdown(self):
        if self._is_shutdown and not self._queue:
            return
        self._is_shutdown = True
        await self._export_pending()
        await self.exporter.shutdown()
        if self.dropped:
            logger.warning(f"{self.dropped} log records were dropped because the queue was full.")
        logger.info("Log batch processor has been shut down.")
