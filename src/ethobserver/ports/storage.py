# ethobserver/ports/storage.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import NotificationRec


class NotificationSink(Protocol):
    """Port for exporting emitted notifications (e.g., JSONL file)."""

    async def append_many(self, recs: Sequence[NotificationRec]) -> None:
        """Persist a batch in emission order; either all records are written or the call raises."""
