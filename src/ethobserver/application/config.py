from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .retry import RetryPolicy

DEFAULT_CONFIRMATIONS = 12
DEFAULT_ERC20_CACHE_SIZE = 512
DEFAULT_BLOCKS_CACHE_SIZE = 64
DEFAULT_POLL_INTERVAL_S = 2.0


def _pick(raw: Mapping[str, Any], *names: str) -> Any:
    """First truthy value among the given spellings; 0/None/'' count as unset."""
    for n in names:
        v = raw.get(n)
        if v:
            return v
    return None


@dataclass(slots=True, frozen=True)
class Erc20Config:
    confirmations_required: int = DEFAULT_CONFIRMATIONS
    cache_size: int = DEFAULT_ERC20_CACHE_SIZE


@dataclass(slots=True, frozen=True)
class ObserverConfig:
    confirmations_required: int = DEFAULT_CONFIRMATIONS
    erc20: Erc20Config = field(default_factory=Erc20Config)
    blocks_cache_size: int = DEFAULT_BLOCKS_CACHE_SIZE
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "ObserverConfig":
        """
        Accepts the camelCase option names (confirmationsRequired, erc20.cacheSize, ...)
        as well as snake_case. Missing or falsy values fall back to the defaults.
        """
        raw = raw or {}
        erc20_raw: Mapping[str, Any] = raw.get("erc20") or {}
        retry_raw: Mapping[str, Any] = raw.get("retry") or {}

        erc20 = Erc20Config(
            confirmations_required=int(_pick(erc20_raw, "confirmationsRequired", "confirmations_required")
                                       or DEFAULT_CONFIRMATIONS),
            cache_size=int(_pick(erc20_raw, "cacheSize", "cache_size") or DEFAULT_ERC20_CACHE_SIZE),
        )

        base = RetryPolicy()
        max_attempts = retry_raw.get("maxAttempts", retry_raw.get("max_attempts", base.max_attempts))
        retry = RetryPolicy(
            initial_delay=float(retry_raw.get("initialDelay", retry_raw.get("initial_delay", base.initial_delay))),
            multiplier=float(_pick(retry_raw, "multiplier") or base.multiplier),
            max_delay=float(retry_raw.get("maxDelay", retry_raw.get("max_delay", base.max_delay))),
            max_attempts=None if max_attempts is None else int(max_attempts),
        )

        return cls(
            confirmations_required=int(_pick(raw, "confirmationsRequired", "confirmations_required")
                                       or DEFAULT_CONFIRMATIONS),
            erc20=erc20,
            blocks_cache_size=int(_pick(raw, "blocksCacheSize", "blocks_cache_size") or DEFAULT_BLOCKS_CACHE_SIZE),
            poll_interval_s=float(_pick(raw, "pollInterval", "poll_interval_s") or DEFAULT_POLL_INTERVAL_S),
            retry=retry,
        )
