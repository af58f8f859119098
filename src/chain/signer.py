"""
Signer capability consumed by the swap engine.

The engine never reaches for an injected browser provider or any other
ambient wallet. It is handed a ``WalletProvider`` whose ``get_signer()``
returns an object that can report its address, send a transaction, and
wait for the receipt. ``LocalWalletProvider`` is the bundled implementation
backed by a private key, ``ChainClient`` and ``TransactionBuilder``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from config import get_env
from core.base_types import Address, TransactionReceipt, TransactionRequest
from core.wallet_manager import WalletManager

from .client import ChainClient
from .errors import TransactionFailed
from .transaction_builder import TransactionBuilder

logger = logging.getLogger(__name__)


class Signer(Protocol):
    def get_address(self) -> str: ...

    def send_transaction(self, tx: TransactionRequest) -> str: ...

    def wait_for_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]: ...


class WalletProvider(Protocol):
    def connect(self) -> str: ...

    def disconnect(self) -> None: ...

    def get_signer(self) -> Optional[Signer]: ...


@dataclass(frozen=True)
class PendingTransaction:
    """Handle returned as soon as a transaction is accepted by the node."""

    tx_hash: str
    signer: Signer

    async def wait(self) -> Optional[TransactionReceipt]:
        """Receipt once mined, or None if the signer gave up waiting."""
        return await asyncio.to_thread(self.signer.wait_for_receipt, self.tx_hash)


class LocalSigner:
    """Signs with a local key and submits through a JSON-RPC node."""

    def __init__(
        self,
        wallet: WalletManager,
        client: ChainClient,
        chain_id: int,
        gas_priority: str = "medium",
        receipt_timeout: int = 120,
    ):
        self._wallet = wallet
        self._client = client
        self._chain_id = chain_id
        self._gas_priority = gas_priority
        self._receipt_timeout = receipt_timeout

    def get_address(self) -> str:
        return self._wallet.address

    def send_transaction(self, tx: TransactionRequest) -> str:
        tx_hash = (
            TransactionBuilder.from_request(self._client, self._wallet, tx)
            .chain_id(self._chain_id)
            .with_gas_estimate()
            .with_gas_price(self._gas_priority)
            .send()
        )
        logger.info("sent tx %s to %s", tx_hash, tx.to.checksum)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        try:
            return self._client.wait_for_receipt(tx_hash, timeout=self._receipt_timeout)
        except TransactionFailed as exc:
            return exc.receipt
        except TimeoutError:
            logger.warning("no receipt for %s after %ss", tx_hash, self._receipt_timeout)
            return None


class LocalWalletProvider:
    """WalletProvider over a key from the environment or a keystore file."""

    def __init__(
        self,
        client: ChainClient,
        chain_id: int,
        env_var: str = "PRIVATE_KEY",
        wallet: Optional[WalletManager] = None,
    ):
        self._client = client
        self._chain_id = chain_id
        self._env_var = env_var
        self._wallet = wallet
        self._signer: Optional[LocalSigner] = None

    def connect(self) -> str:
        """
        Load the key and return the checksummed address. Refuses to connect
        when the node reports a chain other than the configured one.
        """
        node_chain = self._client.get_chain_id()
        if node_chain != self._chain_id:
            raise ValueError(
                f"RPC node is on chain {node_chain}, expected {self._chain_id}"
            )
        if self._wallet is None:
            self._wallet = WalletManager.load(
                env_var=self._env_var,
                keyfile=get_env("SWAP_KEYFILE"),
                password=get_env("SWAP_KEYFILE_PASSWORD"),
            )
        self._signer = LocalSigner(self._wallet, self._client, self._chain_id)
        address = Address.from_string(self._wallet.address).checksum
        logger.info("wallet connected %s", address)
        return address

    def disconnect(self) -> None:
        self._signer = None

    def get_signer(self) -> Optional[LocalSigner]:
        return self._signer
