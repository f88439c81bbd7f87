import time
from dataclasses import asdict, is_dataclass
from typing import Any

from ..domain.models import NotificationRec


def _jsonable(payload: Any) -> dict[str, Any]:
    if is_dataclass(payload) and not isinstance(payload, type):
        raw = asdict(payload)
    else:
        raw = {"hash": str(payload)}
    return {k: str(v) if isinstance(v, int) and not isinstance(v, bool) and k in ("value", "amount") else v
            for k, v in raw.items()}


def _key_str(payload: Any) -> str:
    key = getattr(payload, "key", payload)
    if isinstance(key, tuple):
        return ":".join(str(k) for k in key)
    return str(key)


def to_notification(stream: str, event: str, payload: Any, confirmations: int | None = None) -> NotificationRec:
    return NotificationRec(
        stream=stream,
        event=event,
        key=_key_str(payload),
        block_number=getattr(payload, "block_number", None),
        confirmations=confirmations,
        payload=_jsonable(payload),
        updated_at=time.time(),
    )
