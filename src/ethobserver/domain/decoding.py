from __future__ import annotations

from typing import Iterable, Optional

from .address import from_topic
from .models import EventLog, TransferRecord
from .value_types import Address, Topic0

# keccak("Transfer(address,address,uint256)")
TRANSFER_T0 = Topic0("0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef")


def _hex_to_int(s: str) -> int:
    s = s.lower()
    if s in ("", "0x"):
        return 0
    return int(s, 16)


def decode_transfer(log: EventLog) -> Optional[TransferRecord]:
    """Decode an ERC20 Transfer log. ERC721 transfers (tokenId indexed, 4 topics) return None."""
    if len(log.topics) != 3 or log.topics[0].lower() != TRANSFER_T0:
        return None
    return TransferRecord(
        token=Address(log.address.lower()),
        from_address=from_topic(log.topics[1]),
        to_address=from_topic(log.topics[2]),
        amount=_hex_to_int(log.data_hex),
        tx_hash=log.tx_hash,
        log_index=log.log_index,
        block_number=log.block_number,
    )


def decode_transfers(logs: Iterable[EventLog]) -> list[TransferRecord]:
    out: list[TransferRecord] = []
    for log in logs:
        rec = decode_transfer(log)
        if rec is not None:
            out.append(rec)
    out.sort(key=lambda r: (r.block_number, r.log_index))
    return out
