# ethobserver/ports/rpc.py
from __future__ import annotations

from typing import Optional, Protocol, Sequence
from ..domain.models import Block, EventLog, Transaction
from ..domain.value_types import Address


class ChainClient(Protocol):
    """Port defining the contract for an Ethereum JSON-RPC client."""

    async def latest_block(self) -> int:
        """Return the latest block number as an integer."""

    async def get_block(self, number: int, full_transactions: bool = True) -> Block:
        """Return block `number`; raise rather than return partial data."""

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        """Return the transaction, or None if the node does not know it."""

    async def get_logs(
        self,
        *,
        topics: Sequence[Optional[Sequence[str]]],
        from_block: int,
        to_block: int,
        address: Address | None = None,
    ) -> list[EventLog]:
        """Return normalized, typed logs for [from_block, to_block] inclusive."""
