"""Failures surfaced by the quote and execution engine."""

from __future__ import annotations


class SwapError(Exception):
    """Base class for engine errors."""


class RoutingUnavailable(SwapError):
    """Pair graph has not completed its first refresh."""


class NoRouteFound(SwapError):
    """No path between the tokens within the hop bound."""


class InsufficientLiquidity(SwapError, ValueError):
    """Requested output would drain the pool reserve."""


class WalletNotConnected(SwapError):
    """Operation needs a signer and none is connected."""


class ApprovalFailed(SwapError):
    """Approval transaction was mined with a failure status."""


class TransactionRejected(SwapError):
    """Swap transaction was mined with a failure status."""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} rejected")


class ReceiptMissing(SwapError):
    """Confirmation never arrived for a submitted transaction."""

    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Receipt not found for {tx_hash}, please try again")


class Unexpected(SwapError):
    """Wraps a lower-level failure caught at the controller boundary."""
