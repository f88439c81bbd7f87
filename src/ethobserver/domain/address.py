from __future__ import annotations

from eth_utils import is_address, to_normalized_address

from .value_types import Address

ADDRESS_BITS = 160
ADDRESS_HEX_LEN = ADDRESS_BITS // 4          # 40 hex digits, without "0x"
MAX_ADDRESS_INT = (1 << ADDRESS_BITS) - 1


def to_int(address: str) -> int:
    """Parse a 0x-prefixed hex address into its unsigned integer value."""
    if address[:2].lower() != "0x":
        raise ValueError(f"Address must be 0x-prefixed: {address!r}")
    value = int(address[2:], 16)
    if value > MAX_ADDRESS_INT:
        raise ValueError(f"{address!r} is wider than 160 bits")
    return value


def to_address(value: int) -> Address:
    """Render an integer as a canonical address: '0x' + 40 lowercase hex digits, zero-padded."""
    if value < 0 or value > MAX_ADDRESS_INT:
        raise ValueError(f"{value} is outside the 160-bit address space")
    return Address("0x" + format(value, f"0{ADDRESS_HEX_LEN}x"))


def normalize(address: str) -> Address:
    """Lowercase and validate a user-supplied address (checksummed or not)."""
    if not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Address(to_normalized_address(address))


def from_topic(topic: str) -> Address:
    """Indexed address topics are 32-byte words; the address is the low 20 bytes."""
    s = topic.lower()
    if s.startswith("0x"):
        s = s[2:]
    return Address("0x" + s[-ADDRESS_HEX_LEN:].rjust(ADDRESS_HEX_LEN, "0"))


def to_topic(address: str) -> str:
    return "0x" + address.lower()[2:].rjust(64, "0")
