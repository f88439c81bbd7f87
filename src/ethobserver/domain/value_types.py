from __future__ import annotations
from typing import NewType, Literal

Address   = NewType("Address", str)    # 0x-prefixed, lowercase, 42 chars
TxHash    = NewType("TxHash", str)     # 66-char 0x-hash, lowercase
Topic0    = NewType("Topic0", str)     # 66-char 0x-hash
Stage     = Literal["pending", "confirming", "success"]
EventName = Literal["pending", "confirmation", "success"]
Stream    = Literal["native", "token"]
