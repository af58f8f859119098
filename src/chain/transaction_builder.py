"""EIP-1559 transaction assembly for the local signer."""

from __future__ import annotations

from dataclasses import dataclass, replace

from eth_account.datastructures import SignedTransaction

from core.base_types import Address, TokenAmount, TransactionRequest
from core.wallet_manager import WalletManager

from .client import ChainClient

_PRIORITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class _Draft:
    to: Address | None = None
    value: TokenAmount | None = None
    data: bytes = b""
    nonce: int | None = None
    gas_limit: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee: int | None = None
    chain_id: int = 1


class TransactionBuilder:
    """
    Fluent builder that turns an unsigned swap or approve request into a
    signed, gas-priced transaction from the wallet's address.

        tx_hash = (TransactionBuilder.from_request(client, wallet, request)
            .chain_id(167012)
            .with_gas_estimate()
            .with_gas_price("medium")
            .send())

    The sender is always the wallet. It is attached to the request used for
    gas estimation and removed again before signing.
    """

    def __init__(self, client: ChainClient, wallet: WalletManager):
        self._client = client
        self._wallet = wallet
        self._draft = _Draft()

    @classmethod
    def from_request(
        cls, client: ChainClient, wallet: WalletManager, request: TransactionRequest
    ) -> "TransactionBuilder":
        """Seed target, value and calldata from an engine-built request."""
        return cls(client, wallet).to(request.to).value(request.value).data(request.data)

    def to(self, address: Address) -> "TransactionBuilder":
        return self._set(to=address)

    def value(self, amount: TokenAmount) -> "TransactionBuilder":
        return self._set(value=amount)

    def data(self, calldata: bytes) -> "TransactionBuilder":
        return self._set(data=calldata or b"")

    def nonce(self, nonce: int) -> "TransactionBuilder":
        return self._set(nonce=nonce)

    def gas_limit(self, limit: int) -> "TransactionBuilder":
        return self._set(gas_limit=limit)

    def chain_id(self, chain_id: int) -> "TransactionBuilder":
        if chain_id <= 0:
            raise ValueError("chain_id must be positive")
        return self._set(chain_id=chain_id)

    def with_gas_estimate(self, buffer: float = 1.2) -> "TransactionBuilder":
        """Gas limit = node estimate * ``buffer``."""
        if buffer <= 0:
            raise ValueError("buffer must be positive")
        estimate = self._client.estimate_gas(self._request(priced=False))
        return self._set(gas_limit=int(estimate * buffer))

    def with_gas_price(self, priority: str = "medium") -> "TransactionBuilder":
        if priority not in _PRIORITIES:
            raise ValueError("priority must be low, medium, or high")
        gas = self._client.get_gas_price()
        return self._set(
            max_priority_fee=getattr(gas, f"priority_fee_{priority}"),
            max_fee_per_gas=gas.get_max_fee(priority),
        )

    def build(self) -> TransactionRequest:
        return self._request(priced=True)

    def build_and_sign(self) -> SignedTransaction:
        payload = self.build().to_dict()
        # eth-account derives the sender from the key
        payload.pop("from", None)
        return self._wallet.sign_transaction(payload)

    def send(self) -> str:
        return self._client.send_transaction(self.build_and_sign().raw_transaction)

    def _set(self, **changes) -> "TransactionBuilder":
        self._draft = replace(self._draft, **changes)
        return self

    def _request(self, priced: bool) -> TransactionRequest:
        draft = self._draft
        if draft.to is None:
            raise ValueError("to address is required")
        if draft.value is None:
            raise ValueError("value is required")
        if priced:
            if draft.gas_limit is None:
                raise ValueError("gas_limit is required (call with_gas_estimate)")
            if draft.max_fee_per_gas is None or draft.max_priority_fee is None:
                raise ValueError("max_fee_per_gas is required (call with_gas_price)")

        sender = Address.from_string(self._wallet.address)
        if draft.nonce is None:
            self._set(nonce=self._client.get_nonce(sender))
            draft = self._draft

        return TransactionRequest(
            to=draft.to,
            value=draft.value,
            data=draft.data,
            nonce=draft.nonce,
            gas_limit=draft.gas_limit,
            max_fee_per_gas=draft.max_fee_per_gas,
            max_priority_fee=draft.max_priority_fee,
            chain_id=draft.chain_id,
            sender=sender,
        )
