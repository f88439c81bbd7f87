from __future__ import annotations
import os, json, asyncio
from dataclasses import asdict
from typing import Sequence
from ..ports.storage import NotificationSink
from ..domain.models import NotificationRec

def _to_line(rec: NotificationRec) -> str:
    return json.dumps(asdict(rec), separators=(",", ":"), sort_keys=True) + "\n"

class JSONLNotificationSink(NotificationSink):
    """One JSON object per notification. Writes run in a worker thread, one fsync per batch."""

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self._lock = asyncio.Lock()
        self.written = 0

    def _write_lines(self, lines: list[str]) -> None:
        with open(self.path, "a") as f:
            f.writelines(lines)
            f.flush(); os.fsync(f.fileno())

    async def append_many(self, recs: Sequence[NotificationRec]) -> None:
        lines = [_to_line(r) for r in recs]
        if not lines:
            return
        async with self._lock:
            await asyncio.to_thread(self._write_lines, lines)
            self.written += len(lines)
