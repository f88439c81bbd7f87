from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Hashable, Iterable, Optional

from ..domain.address import to_topic
from ..domain.decoding import TRANSFER_T0, decode_transfers
from ..domain.models import Transaction, TransactionRef, TransferRecord
from ..ports.rpc import ChainClient
from .watch_list import WatchList

logger = logging.getLogger(__name__)


class TxFeed:
    """Scans block bodies for transactions sent from or to a watched address."""

    def __init__(self, watch_list: WatchList) -> None:
        self.watch_list = watch_list
        self._handlers: list[Callable[[TransactionRef], None]] = []

    def on_new_transaction(self, handler: Callable[[TransactionRef], None]) -> None:
        self._handlers.append(handler)

    def add(self, transactions: Iterable[Transaction]) -> list[TransactionRef]:
        watched = self.watch_list.snapshot()
        if not watched:
            return []
        found: list[TransactionRef] = []
        for tx in transactions:
            if tx.from_address in watched or (tx.to_address is not None and tx.to_address in watched):
                ref = TransactionRef.from_transaction(tx)
                found.append(ref)
                for h in self._handlers:
                    h(ref)
        if found:
            logger.debug("detected %d watched transaction(s)", len(found))
        return found


class TransferFeed:
    """
    Scans Transfer logs for watched senders/recipients.
    A bounded LRU of transfer keys keeps re-scans of the same block from re-emitting.
    """

    def __init__(self, client: ChainClient, watch_list: WatchList, cache_size: int = 512) -> None:
        self.client = client
        self.watch_list = watch_list
        self.cache_size = max(1, cache_size)
        self._cache: OrderedDict[Hashable, None] = OrderedDict()
        self._handlers: list[Callable[[TransferRecord], None]] = []

    def on_new_transfer(self, handler: Callable[[TransferRecord], None]) -> None:
        self._handlers.append(handler)

    def _remember(self, key: Hashable) -> bool:
        """Record `key`; False if it was already cached."""
        if key in self._cache:
            self._cache.move_to_end(key)
            return False
        self._cache[key] = None
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return True

    async def scan(self, from_block: int, to_block: Optional[int] = None) -> list[TransferRecord]:
        to_block = from_block if to_block is None else to_block
        watched = self.watch_list.snapshot()
        if not watched:
            return []
        addr_topics = [to_topic(a) for a in sorted(watched)]
        outgoing = await self.client.get_logs(topics=[[TRANSFER_T0], addr_topics],
                                              from_block=from_block, to_block=to_block)
        incoming = await self.client.get_logs(topics=[[TRANSFER_T0], None, addr_topics],
                                              from_block=from_block, to_block=to_block)
        emitted: list[TransferRecord] = []
        for rec in decode_transfers([*outgoing, *incoming]):
            if rec.from_address not in watched and rec.to_address not in watched:
                continue
            if not self._remember(rec.key):
                continue
            emitted.append(rec)
            for h in self._handlers:
                h(rec)
        if emitted:
            logger.debug("blocks %d-%d: %d new transfer(s)", from_block, to_block, len(emitted))
        return emitted
