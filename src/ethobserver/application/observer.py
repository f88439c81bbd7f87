from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Mapping, Optional, Union

from ..domain import address as addr
from ..domain.errors import RetryExhausted
from ..domain.models import TransactionRef, TransferRecord
from ..domain.value_types import Address, EventName, Stream
from ..ports.rpc import ChainClient
from .blocks import BlockFeed
from .collectors import TransferFeed, TxFeed
from .config import ObserverConfig
from .retry import retry
from .tracker import EVENTS, ConfirmationTracker, Handler
from .watch_list import WatchList

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SubscriptionKind:
    stream: Stream
    event: EventName

    @classmethod
    def parse(cls, kind: str) -> "SubscriptionKind":
        """'pending' -> native/pending, 'transfer-success' -> token/success; anything else raises."""
        prefix, sep, rest = kind.partition("-")
        stream, event = ("token", rest) if sep and prefix == "transfer" else ("native", kind)
        if event not in EVENTS:
            raise ValueError(f"Unknown subscription kind {kind!r}; expected one of {SUBSCRIPTION_KINDS}")
        return cls(stream=stream, event=event)  # type: ignore[arg-type]

    def __str__(self) -> str:
        return self.event if self.stream == "native" else f"transfer-{self.event}"


SUBSCRIPTION_KINDS: tuple[str, ...] = (
    "pending", "confirmation", "success",
    "transfer-pending", "transfer-confirmation", "transfer-success",
)


class Observer:
    """
    Watches addresses for native transactions and ERC20 transfers and reports
    their confirmation lifecycle.

    Each new head is handled as one unit (fetch block, detect, advance both trackers)
    under the retry policy; block N+1 is not started before N is done or given up.
    Detected items are appended to their tracker in separate tasks with their own retries.
    Operations that exhaust their retries are reported to `on_error` handlers and skipped.
    """

    def __init__(
        self,
        client: ChainClient,
        config: Union[ObserverConfig, Mapping[str, Any], None] = None,
        watch_list: Optional[WatchList] = None,
        *,
        start_block: Optional[int] = None,
    ) -> None:
        self.config = config if isinstance(config, ObserverConfig) else ObserverConfig.from_mapping(config)
        self.client = client
        self.watch_list = WatchList() if watch_list is None else watch_list
        cfg = self.config

        self.block_feed = BlockFeed(client, cfg.blocks_cache_size, cfg.poll_interval_s, start_block)

        self.tx_feed = TxFeed(self.watch_list)
        self.native_tracker: ConfirmationTracker[TransactionRef] = ConfirmationTracker(
            client, cfg.confirmations_required, name="native")

        self.transfer_feed = TransferFeed(client, self.watch_list, cfg.erc20.cache_size)
        self.token_tracker: ConfirmationTracker[TransferRecord] = ConfirmationTracker(
            client, cfg.erc20.confirmations_required, name="token", history_size=cfg.erc20.cache_size)

        self._error_handlers: list[Callable[[RetryExhausted], Any]] = []
        self._tasks: set[asyncio.Task[None]] = set()

        self.block_feed.on_new_block(self.process_block)
        self.tx_feed.on_new_transaction(self._on_new_transaction)
        self.transfer_feed.on_new_transfer(self._on_new_transfer)

    # ── subscriptions ───────────────────────────────

    def subscribe(self, kind: Union[str, SubscriptionKind], handler: Handler) -> None:
        k = kind if isinstance(kind, SubscriptionKind) else SubscriptionKind.parse(kind)
        tracker = self.token_tracker if k.stream == "token" else self.native_tracker
        tracker.subscribe(k.event, handler)

    def on_error(self, handler: Callable[[RetryExhausted], Any]) -> None:
        self._error_handlers.append(handler)

    # ── watch list / address helpers ────────────────

    def watch(self, address: str) -> bool:
        return self.watch_list.add(address)

    def unwatch(self, address: str) -> bool:
        return self.watch_list.remove(address)

    @staticmethod
    def to_int(address: str) -> int:
        return addr.to_int(address)

    @staticmethod
    def to_address(value: int) -> Address:
        return addr.to_address(value)

    # ── block processing ────────────────────────────

    async def process_block(self, block_number: int) -> None:
        try:
            await retry(lambda: self._process_block(block_number),
                        policy=self.config.retry, describe=f"process block {block_number}")
        except RetryExhausted as e:
            self._report(e)

    async def _process_block(self, block_number: int) -> None:
        block = await self.client.get_block(block_number, True)
        self.tx_feed.add(block.transactions)
        await self.transfer_feed.scan(block_number)
        # let appends that need no lookup register before confirmations advance
        await asyncio.sleep(0)
        self.native_tracker.process(block_number)
        self.token_tracker.process(block_number)
        logger.debug("block %d processed (native=%d token=%d tracked)",
                     block_number, len(self.native_tracker), len(self.token_tracker))

    # ── detection ───────────────────────────────────

    def _on_new_transaction(self, ref: TransactionRef) -> None:
        self._spawn(self._add_item(self.native_tracker, ref.key, ref, f"add transaction {ref.hash}"))

    def _on_new_transfer(self, rec: TransferRecord) -> None:
        self._spawn(self._add_item(self.token_tracker, rec.key, rec,
                                   f"add transfer {rec.tx_hash}:{rec.log_index}"))

    async def _add_item(self, tracker: ConfirmationTracker[Any], key: Any, item: Any, describe: str) -> None:
        try:
            await retry(lambda: tracker.add(key, item), policy=self.config.retry, describe=describe)
        except RetryExhausted as e:
            self._report(e)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _report(self, err: RetryExhausted) -> None:
        logger.error("%s", err)
        for h in list(self._error_handlers):
            try:
                h(err)
            except Exception:
                logger.exception("error handler %r failed", h)

    # ── lifecycle ───────────────────────────────────

    async def wait_idle(self) -> None:
        """Wait for outstanding detection appends."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run(self) -> None:
        try:
            await self.block_feed.run()
        finally:
            for t in list(self._tasks):
                t.cancel()
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def stop(self) -> None:
        self.block_feed.stop()
