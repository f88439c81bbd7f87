from __future__ import annotations

from collections import Counter
from typing import Optional, Sequence

import pytest

from ethobserver.domain.address import to_address, to_topic
from ethobserver.domain.decoding import TRANSFER_T0
from ethobserver.domain.errors import RPCError
from ethobserver.domain.models import Block, EventLog, Transaction
from ethobserver.domain.value_types import TxHash

ALICE = to_address(0xA11CE)
BOB = to_address(0xB0B)
CAROL = to_address(0xCA201)
TOKEN = to_address(0x70CE11)


def tx_hash(n: int) -> TxHash:
    return TxHash("0x" + format(n, "064x"))


def make_tx(n: int, frm: str, to: Optional[str], block: Optional[int], value: int = 10**18) -> Transaction:
    return Transaction(hash=tx_hash(n), from_address=frm, to_address=to, value=value, block_number=block)


def make_transfer_log(frm: str, to: str, amount: int, tx: int, log_index: int, block: int,
                      token: str = TOKEN) -> EventLog:
    return EventLog(
        address=token,
        topics=(TRANSFER_T0, to_topic(frm), to_topic(to)),
        data_hex=hex(amount),
        block_number=block,
        tx_hash=tx_hash(tx),
        log_index=log_index,
    )


class FakeChain:
    """In-memory ChainClient with scriptable failures."""

    def __init__(self) -> None:
        self.head = 0
        self.blocks: dict[int, Block] = {}
        self.txs: dict[str, Transaction] = {}
        self.logs: list[EventLog] = []
        self.calls: Counter[tuple[str, object]] = Counter()
        self._failures: Counter[tuple[str, object]] = Counter()

    def add_block(self, number: int, txs: Sequence[Transaction] = (), logs: Sequence[EventLog] = ()) -> None:
        self.blocks[number] = Block(number=number, hash="0x" + format(number, "064x"), transactions=tuple(txs))
        for tx in txs:
            self.txs[tx.hash] = tx
        self.logs.extend(logs)
        self.head = max(self.head, number)

    def fail(self, method: str, arg: object, times: int) -> None:
        self._failures[(method, arg)] += times

    def _maybe_fail(self, method: str, arg: object) -> None:
        self.calls[(method, arg)] += 1
        if self._failures[(method, arg)] > 0:
            self._failures[(method, arg)] -= 1
            raise RPCError(method, "node unavailable", -32000)

    async def latest_block(self) -> int:
        self._maybe_fail("latest_block", None)
        return self.head

    async def get_block(self, number: int, full_transactions: bool = True) -> Block:
        self._maybe_fail("get_block", number)
        return self.blocks.get(number) or Block(number=number, hash="0x" + format(number, "064x"))

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        self._maybe_fail("get_transaction", tx_hash)
        return self.txs.get(tx_hash)

    async def get_logs(self, *, topics, from_block: int, to_block: int, address=None) -> list[EventLog]:
        self._maybe_fail("get_logs", from_block)
        out: list[EventLog] = []
        for log in self.logs:
            if not from_block <= log.block_number <= to_block:
                continue
            if address is not None and log.address != address:
                continue
            if all(allowed is None or (i < len(log.topics) and log.topics[i] in allowed)
                   for i, allowed in enumerate(topics)):
                out.append(log)
        return out


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
