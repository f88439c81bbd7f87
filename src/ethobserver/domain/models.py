from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, TypeVar
from .value_types import Address, Stage, TxHash

P = TypeVar("P")

@dataclass(slots=True, frozen=True)
class Transaction:
    hash: TxHash
    from_address: Address
    to_address: Address | None          # None for contract creation
    value: int
    block_number: int | None            # None while in the mempool

@dataclass(slots=True, frozen=True)
class Block:
    number: int
    hash: str
    transactions: tuple[Transaction, ...] = ()

@dataclass(slots=True, frozen=True)
class EventLog:
    address: Address
    topics: tuple[str, ...]             # all topics, lowercased with 0x
    data_hex: str
    block_number: int
    tx_hash: TxHash
    log_index: int

@dataclass(slots=True, frozen=True)
class TransactionRef:
    hash: TxHash
    block_number: int | None = None
    from_address: Address | None = None
    to_address: Address | None = None
    value: int = 0

    @property
    def key(self) -> TxHash:
        return self.hash

    @property
    def tx_hash(self) -> TxHash:
        return self.hash

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionRef":
        return cls(hash=tx.hash, block_number=tx.block_number,
                   from_address=tx.from_address, to_address=tx.to_address, value=tx.value)

@dataclass(slots=True, frozen=True)
class TransferRecord:
    token: Address
    from_address: Address
    to_address: Address
    amount: int                         # raw token units, no decimals applied
    tx_hash: TxHash
    log_index: int
    block_number: int

    @property
    def key(self) -> tuple[TxHash, int]:
        return (self.tx_hash, self.log_index)

@dataclass(slots=True)
class TrackedEntry(Generic[P]):
    key: Hashable
    payload: P
    block_number: int
    confirmations: int = 0
    stage: Stage = "pending"

@dataclass(slots=True, frozen=True)
class NotificationRec:
    stream: str
    event: str
    key: str
    block_number: int | None
    confirmations: int | None
    payload: dict[str, Any] = field(default_factory=dict)   # big ints as strings
    updated_at: float = 0.0
