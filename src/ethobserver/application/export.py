from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..domain.models import NotificationRec
from ..ports.storage import NotificationSink

logger = logging.getLogger(__name__)


class NotificationExporter:
    """
    Buffers notifications emitted by synchronous tracker handlers and writes them to a
    sink in batches from a background task. A failing batch is logged and dropped; the
    exporter keeps consuming so shutdown never waits on a dead writer.
    """

    def __init__(self, sink: NotificationSink, max_batch: int = 256) -> None:
        self.sink = sink
        self.max_batch = max(1, max_batch)
        self.dropped = 0
        self._queue: asyncio.Queue[NotificationRec] = asyncio.Queue()
        self._task: Optional[asyncio.Task[None]] = None

    def submit(self, rec: NotificationRec) -> None:
        self._queue.put_nowait(rec)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            batch = [await self._queue.get()]
            while len(batch) < self.max_batch and not self._queue.empty():
                batch.append(self._queue.get_nowait())
            try:
                await self.sink.append_many(batch)
            except Exception:
                self.dropped += len(batch)
                logger.exception("notification export failed; dropped %d record(s)", len(batch))
            finally:
                for _ in batch:
                    self._queue.task_done()

    async def close(self, timeout: float = 5.0) -> None:
        """Flush what is queued (bounded by `timeout`), then stop the writer."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("notification export: %d record(s) not flushed before shutdown",
                               self._queue.qsize())
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
