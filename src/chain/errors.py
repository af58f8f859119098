"""Errors raised by ChainClient; the swap controller wraps them as Unexpected."""

from __future__ import annotations

from typing import ClassVar, Optional

from core.base_types import TransactionReceipt


class ChainError(Exception):
    """Transport gave up on every RPC URL, or a chain-level failure."""


class RPCError(ChainError):
    """The node answered with an error object (or an HTTP error status)."""

    # lowercase fragment of the node message that selects this class
    node_message: ClassVar[Optional[str]] = None

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        data: Optional[object] = None,
    ):
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_payload(cls, error: dict) -> "RPCError":
        """Most specific subclass for a JSON-RPC ``error`` object."""
        message = str(error.get("message", "RPC error"))
        lowered = message.lower()
        for kind in cls.__subclasses__():
            if kind.node_message and kind.node_message in lowered:
                return kind(message, code=error.get("code"), data=error.get("data"))
        return cls(message, code=error.get("code"), data=error.get("data"))


class InsufficientFunds(RPCError):
    """Wallet cannot cover the swap value plus gas."""

    node_message = "insufficient funds"


class NonceTooLow(RPCError):
    node_message = "nonce too low"


class TransactionFailed(ChainError):
    """Mined with a failure status; the receipt is kept for the caller."""

    def __init__(self, tx_hash: str, receipt: TransactionReceipt):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} reverted")
