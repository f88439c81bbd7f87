from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Optional

from ..ports.rpc import ChainClient

logger = logging.getLogger(__name__)

BlockHandler = Callable[[int], Awaitable[None]]


class BlockFeed:
    """
    Polls the chain head and emits every new block number in increasing order.
    Gaps between two polls are back-filled. Handlers are awaited one after the other,
    so block N is fully handled before N+1 is emitted.

    A head that moves back (lagging node behind a load balancer, shallow reorg) rewinds
    the cursor. When the head moves forward again, numbers still among the last
    `cache_size` emitted are skipped; older ones are emitted again.
    """
    def __init__(
        self,
        client: ChainClient,
        cache_size: int = 64,
        poll_interval_s: float = 2.0,
        start_block: Optional[int] = None,
    ) -> None:
        self.client = client
        self.poll_interval_s = poll_interval_s
        self._seen: deque[int] = deque(maxlen=max(1, cache_size))
        self._last: Optional[int] = None if start_block is None else start_block - 1
        self._handlers: list[BlockHandler] = []
        self._stopped = asyncio.Event()

    @property
    def last_block(self) -> Optional[int]:
        return self._last

    def on_new_block(self, handler: BlockHandler) -> None:
        self._handlers.append(handler)

    async def poll_once(self) -> list[int]:
        head = await self.client.latest_block()
        if self._last is None:
            numbers = [head]
        elif head < self._last:
            logger.info("head went back from %d to %d; rewinding", self._last, head)
            self._last = head
            return []
        else:
            numbers = list(range(self._last + 1, head + 1))
        emitted: list[int] = []
        for n in numbers:
            self._last = n
            if n in self._seen:
                continue
            self._seen.append(n)
            emitted.append(n)
            for h in self._handlers:
                await h(n)
        return emitted

    async def run(self) -> None:
        self._stopped.clear()
        logger.info("block feed started (poll every %.1fs)", self.poll_interval_s)
        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # head polling is idempotent; the next tick retries
                logger.warning("head poll failed: %s: %s", type(e).__name__, e)
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval_s)
            except asyncio.TimeoutError:
                pass
        logger.info("block feed stopped at block %s", self._last)

    def stop(self) -> None:
        self._stopped.set()
