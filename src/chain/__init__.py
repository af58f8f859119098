from .client import ChainClient, GasPrice
from .errors import (
    ChainError,
    InsufficientFunds,
    NonceTooLow,
    RPCError,
    TransactionFailed,
)
from .signer import (
    LocalSigner,
    LocalWalletProvider,
    PendingTransaction,
    Signer,
    WalletProvider,
)
from .transaction_builder import TransactionBuilder

__all__ = [
    "ChainClient",
    "GasPrice",
    "TransactionBuilder",
    "Signer",
    "WalletProvider",
    "PendingTransaction",
    "LocalSigner",
    "LocalWalletProvider",
    "ChainError",
    "RPCError",
    "TransactionFailed",
    "InsufficientFunds",
    "NonceTooLow",
]
