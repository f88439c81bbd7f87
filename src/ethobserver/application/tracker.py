from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

from ..domain.errors import TransactionNotMined
from ..domain.models import TrackedEntry
from ..domain.value_types import EventName
from ..ports.rpc import ChainClient

logger = logging.getLogger(__name__)

P = TypeVar("P")
Handler = Callable[..., Any]

EVENTS: tuple[EventName, ...] = ("pending", "confirmation", "success")


class ConfirmationTracker(Generic[P]):
    """
    Confirmation state machine for one kind of item (native transactions or token transfers).

    Lifecycle per key:
      add()      -> pending(payload)
      process()  -> confirmation(payload, count) each time the count grows
                 -> success(payload) once count >= confirmations_required; entry is dropped

    The head only moves forward: process() with an old block number re-derives the same
    counts and emits nothing. Chain reorganizations are not detected; an item whose
    block gets orphaned keeps counting against the new head.
    """

    def __init__(
        self,
        client: Optional[ChainClient],
        confirmations_required: int = 12,
        *,
        name: str = "native",
        history_size: int = 1024,
    ) -> None:
        self.client = client
        self.confirmations_required = confirmations_required
        self.name = name
        self.history_size = max(1, history_size)
        self._entries: dict[Hashable, TrackedEntry[P]] = {}
        self._finalized: OrderedDict[Hashable, None] = OrderedDict()
        self._handlers: dict[EventName, list[Handler]] = {e: [] for e in EVENTS}
        self._head: Optional[int] = None

    @property
    def head(self) -> Optional[int]:
        return self._head

    def subscribe(self, event: EventName, handler: Handler) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._handlers[event].append(handler)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[TrackedEntry[P]]:
        return list(self._entries.values())

    def confirmations(self, key: Hashable) -> Optional[int]:
        entry = self._entries.get(key)
        return None if entry is None else entry.confirmations

    def _known(self, key: Hashable) -> bool:
        return key in self._entries or key in self._finalized

    async def add(self, key: Hashable, payload: Optional[P] = None) -> bool:
        """
        Start tracking `key`. Returns False if it is already tracked or was finalized recently.
        If the payload does not carry its inclusion block, the transaction is looked up
        on chain; lookup failures propagate.
        """
        if self._known(key):
            return False
        block = getattr(payload, "block_number", None)
        if block is None:
            tx_hash = getattr(payload, "tx_hash", None) or key
            block = await self._resolve_inclusion_block(str(tx_hash))
            if self._known(key):
                return False
        entry: TrackedEntry[P] = TrackedEntry(
            key=key,
            payload=payload if payload is not None else key,  # type: ignore[arg-type]
            block_number=block,
        )
        self._entries[key] = entry
        logger.debug("%s: tracking %s (block %d)", self.name, key, block)
        self._emit("pending", entry.payload)
        return True

    async def _resolve_inclusion_block(self, tx_hash: str) -> int:
        if self.client is None:
            raise ValueError(f"{self.name}: no chain client to resolve {tx_hash}")
        tx = await self.client.get_transaction(tx_hash)
        if tx is None or tx.block_number is None:
            raise TransactionNotMined(tx_hash)
        return tx.block_number

    def process(self, block_number: int) -> None:
        head = block_number if self._head is None else max(self._head, block_number)
        self._head = head
        for entry in list(self._entries.values()):
            if head < entry.block_number:
                continue
            count = head - entry.block_number + 1
            if count <= entry.confirmations:
                continue
            entry.confirmations = count
            entry.stage = "confirming"
            self._emit("confirmation", entry.payload, count)
            if count >= self.confirmations_required:
                entry.stage = "success"
                self._finalize(entry)
                self._emit("success", entry.payload)

    def _finalize(self, entry: TrackedEntry[P]) -> None:
        del self._entries[entry.key]
        self._finalized[entry.key] = None
        if len(self._finalized) > self.history_size:
            self._finalized.popitem(last=False)
        logger.info("%s: %s final after %d confirmations", self.name, entry.key, entry.confirmations)

    def _emit(self, event: EventName, *args: Any) -> None:
        for h in list(self._handlers[event]):
            try:
                h(*args)
            except Exception:
                logger.exception("%s: %s handler %r failed", self.name, event, h)
