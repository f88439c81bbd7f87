from __future__ import annotations


class ObserverError(Exception):
    """Base class for errors raised by ethobserver."""


class RPCError(ObserverError):
    """The node answered with a JSON-RPC error object or an unusable result."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        super().__init__(f"{method} RPC error code={code} message={message}")
        self.method = method
        self.code = code


class TransactionNotMined(ObserverError):
    """The transaction is known to the node but has no inclusion block yet."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"transaction {tx_hash} is not mined yet")
        self.tx_hash = tx_hash


class RetryExhausted(ObserverError):
    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{operation} gave up after {attempts} attempts: {type(last_error).__name__}: {last_error}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
