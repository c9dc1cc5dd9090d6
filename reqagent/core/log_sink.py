"""
Append-only execution log sink.

Entries are pushed onto a bounded asyncio queue and written to the record
store by a single background task. Writes never block or fail the caller:
a full queue or a failing store write is logged and the entry is dropped.
"""

import asyncio
import logging
from typing import Optional

from reqagent.core.config import settings
from reqagent.core.database import RecordStore
from reqagent.models.schemas import ExecutionLogEntry

logger = logging.getLogger(__name__)


class ExecutionLogSink:
    """Bounded queue + background writer for ExecutionLogEntry rows."""

    def __init__(self, store: RecordStore, max_queue_size: Optional[int] = None):
        self.store = store
        self.max_queue_size = max_queue_size or settings.log_sink_queue_size
        self._queue: Optional[asyncio.Queue] = None
        self._writer: Optional[asyncio.Task] = None
        self.dropped = 0
        self.written = 0

    def _ensure_writer(self):
        # Queue and task are bound to the running loop, so create them lazily
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        if self._writer is None or self._writer.done():
            self._writer = asyncio.create_task(self._drain())

    def emit(self, entry: ExecutionLogEntry) -> bool:
        """Queue an entry for writing. Returns False if it was dropped."""
        try:
            self._ensure_writer()
            self._queue.put_nowait(entry)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Execution log queue full, dropping entry for {entry.provider_name}"
            )
            return False
        except Exception as e:
            self.dropped += 1
            logger.warning(f"Failed to queue execution log entry: {e}")
            return False

    async def _drain(self):
        while True:
            entry = await self._queue.get()
            try:
                await self.store.append_execution_log(entry)
                self.written += 1
            except Exception as e:
                self.dropped += 1
                logger.warning(f"Failed to write execution log entry: {e}")
            finally:
                self._queue.task_done()

    async def flush(self):
        """Wait until every queued entry has been written or dropped."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self):
        """Flush pending entries and cancel the writer task."""
        await self.flush()
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
