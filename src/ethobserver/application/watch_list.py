from __future__ import annotations

import threading
from typing import Iterable, Iterator

from ..domain.address import normalize
from ..domain.value_types import Address


class WatchList:
    """
    Owned set of watched addresses, stored lowercase.
    Writers are the caller; feeds only read, via `snapshot()` or `__contains__`.
    """
    def __init__(self, addresses: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._addresses: set[Address] = {normalize(a) for a in addresses}

    def add(self, address: str) -> bool:
        a = normalize(address)
        with self._lock:
            if a in self._addresses:
                return False
            self._addresses.add(a)
            return True

    def remove(self, address: str) -> bool:
        a = normalize(address)
        with self._lock:
            if a not in self._addresses:
                return False
            self._addresses.discard(a)
            return True

    def snapshot(self) -> frozenset[Address]:
        with self._lock:
            return frozenset(self._addresses)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        with self._lock:
            return address.lower() in self._addresses

    def __len__(self) -> int:
        with self._lock:
            return len(self._addresses)

    def __iter__(self) -> Iterator[Address]:
        return iter(sorted(self.snapshot()))
