from __future__ import annotations
import asyncio, logging, httpx
from typing import Any, Optional, Sequence
from ..domain.errors import RPCError
from ..domain.models import Block, EventLog, Transaction
from ..domain.value_types import Address, TxHash
from ..ports.rpc import ChainClient

logger = logging.getLogger(__name__)

def _to_hex_block(n: int) -> str: return hex(int(n))
def _from_hex(s: str | None) -> int | None: return None if s is None else int(s, 16)
def _lower(s: str | None) -> Address | None: return None if s is None else Address(s.lower())

def _parse_tx(raw: dict[str, Any]) -> Transaction:
    return Transaction(
        hash=TxHash(raw["hash"].lower()),
        from_address=Address(raw["from"].lower()),
        to_address=_lower(raw.get("to")),
        value=_from_hex(raw.get("value")) or 0,
        block_number=_from_hex(raw.get("blockNumber")),
    )

def _parse_log(rl: dict[str, Any]) -> EventLog:
    return EventLog(
        address=Address(rl["address"].lower()),
        topics=tuple(t.lower() for t in rl.get("topics", [])),
        data_hex=rl.get("data") or "0x",
        block_number=int(rl["blockNumber"], 16),
        tx_hash=TxHash(rl["transactionHash"].lower()),
        log_index=int(rl["logIndex"], 16),
    )

class HttpxRPC(ChainClient):
    def __init__(self, rpc_url: str, timeout_s: int = 20, max_conn: int = 64,
                 transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn//2),
            transport=transport,
        )
        self._id = 0

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._id += 1
        payload = {"jsonrpc":"2.0","id":self._id,"method":method,"params":params}
        # retry on 429 with simple backoff; anything else is the caller's retry policy
        for attempt in range(3):
            r = await self.client.post(self.rpc_url, json=payload)
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                logger.debug("%s rate limited, sleeping %.1fs", method, delay)
                await asyncio.sleep(delay); continue
            r.raise_for_status()
            data = r.json()
            if "error" in data:
                err = data["error"]
                if isinstance(err, dict):
                    raise RPCError(method, str(err.get("message")), err.get("code"))
                raise RPCError(method, str(err))
            return data.get("result")
        raise RPCError(method, "retries exhausted after HTTP 429", 429)

    async def latest_block(self) -> int:
        return int(await self._call("eth_blockNumber", []), 16)

    async def get_block(self, number: int, full_transactions: bool = True) -> Block:
        res = await self._call("eth_getBlockByNumber", [_to_hex_block(number), full_transactions])
        if res is None:
            raise RPCError("eth_getBlockByNumber", f"block {number} not available")
        txs = tuple(_parse_tx(t) for t in res.get("transactions", []) if isinstance(t, dict))
        return Block(number=int(res["number"], 16), hash=res["hash"].lower(), transactions=txs)

    async def get_transaction(self, tx_hash: str) -> Optional[Transaction]:
        res = await self._call("eth_getTransactionByHash", [tx_hash])
        return None if res is None else _parse_tx(res)

    async def get_logs(self, *, topics: Sequence[Optional[Sequence[str]]], from_block: int, to_block: int,
                       address: Address | None = None) -> list[EventLog]:
        flt: dict[str, Any] = {
            "fromBlock": _to_hex_block(from_block),
            "toBlock": _to_hex_block(to_block),
            "topics": [None if t is None else [x.lower() for x in t] for t in topics],
        }
        if address is not None:
            flt["address"] = str(address)
        res = await self._call("eth_getLogs", [flt]) or []
        return [_parse_log(rl) for rl in res]

    async def aclose(self) -> None:
        await self.client.aclose()
