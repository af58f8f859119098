"""JSON-RPC client for the reads and writes the swap engine makes."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests

from core.base_types import Address, TransactionReceipt, TransactionRequest

from .errors import ChainError, RPCError, TransactionFailed

logger = logging.getLogger(__name__)

_PRIORITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class GasPrice:
    """Base fee of the latest block plus priority-fee tiers, in wei."""

    base_fee: int
    priority_fee_low: int
    priority_fee_medium: int
    priority_fee_high: int

    def priority_fee(self, priority: str = "medium") -> int:
        if priority not in _PRIORITIES:
            raise ValueError("priority must be low, medium, or high")
        return getattr(self, f"priority_fee_{priority}")

    def get_max_fee(self, priority: str = "medium", buffer: float = 1.2) -> int:
        """maxFeePerGas leaving ``buffer`` headroom for base-fee growth."""
        if buffer <= 0:
            raise ValueError("buffer must be positive")
        return int(self.base_fee * buffer) + self.priority_fee(priority)


class ChainClient:
    """
    Blocking JSON-RPC client used by the approval gate, the partner-fee
    registry and the local signer (the engine calls it from worker threads).

    Transport errors are retried with exponential backoff, then the next URL
    in ``rpc_urls`` is tried. Error objects returned by the node are never
    retried; they are mapped to ``RPCError`` subclasses by message.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout: int = 30,
        max_retries: int = 3,
    ):
        if not rpc_urls:
            raise ValueError("rpc_urls must not be empty")
        self._rpc_urls = rpc_urls
        self._timeout = timeout
        self._max_retries = max_retries
        self._session = requests.Session()

    def get_chain_id(self) -> int:
        return _hex_to_int(self._rpc_call("eth_chainId", []))

    def get_nonce(self, address: Address, block: str = "pending") -> int:
        return _hex_to_int(
            self._rpc_call("eth_getTransactionCount", [address.checksum, block])
        )

    def get_gas_price(self) -> GasPrice:
        block = self._rpc_call("eth_getBlockByNumber", ["latest", False])
        tip = _hex_to_int(self._rpc_call("eth_maxPriorityFeePerGas", []))
        return GasPrice(
            base_fee=_hex_to_int(block.get("baseFeePerGas", "0x0")),
            priority_fee_low=tip,
            priority_fee_medium=tip,
            priority_fee_high=int(tip * 1.5),
        )

    def estimate_gas(self, tx: TransactionRequest) -> int:
        return _hex_to_int(self._rpc_call("eth_estimateGas", [tx.to_rpc_dict()]))

    def call(self, tx: TransactionRequest, block: str = "latest") -> bytes:
        """eth_call; returns the raw ABI-encoded result."""
        return _hex_to_bytes(self._rpc_call("eth_call", [tx.to_rpc_dict(), block]))

    def send_transaction(self, signed_tx: bytes) -> str:
        return str(self._rpc_call("eth_sendRawTransaction", [f"0x{signed_tx.hex()}"]))

    def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        data = self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        return None if data is None else TransactionReceipt.from_rpc(data)

    def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        poll_interval: float = 1.0,
    ) -> TransactionReceipt:
        """
        Poll until mined. Raises ``TransactionFailed`` (carrying the receipt)
        on a failure status and ``TimeoutError`` after ``timeout`` seconds.
        """
        deadline = time.time() + timeout
        while time.time() < deadline:
            receipt = self.get_receipt(tx_hash)
            if receipt is None:
                time.sleep(poll_interval)
                continue
            if not receipt.status:
                raise TransactionFailed(tx_hash, receipt)
            return receipt
        raise TimeoutError(f"Timed out waiting for receipt {tx_hash}")

    def _rpc_call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        last_error: Optional[Exception] = None
        for url in self._rpc_urls:
            for attempt in range(self._max_retries):
                try:
                    return self._post(url, payload)
                except (requests.Timeout, requests.ConnectionError, json.JSONDecodeError) as exc:
                    logger.warning("rpc %s via %s failed (attempt %d): %s", method, url, attempt + 1, exc)
                    last_error = exc
                    self._sleep_backoff(attempt)
        raise ChainError("RPC request failed") from last_error

    def _post(self, url: str, payload: dict) -> Any:
        start = time.perf_counter()
        response = self._session.post(url, json=payload, timeout=self._timeout)
        logger.info(
            "rpc %s %s in %.3fs", payload["method"], url, time.perf_counter() - start
        )
        if response.status_code >= 400:
            raise RPCError(f"HTTP {response.status_code} from {url}")
        data = response.json()
        if "error" in data:
            self._raise_rpc_error(data["error"])
        return data.get("result")

    def _sleep_backoff(self, attempt: int) -> None:
        time.sleep(0.5 * (2**attempt))

    def _raise_rpc_error(self, error: dict) -> None:
        raise RPCError.from_payload(error)


def _hex_to_int(value: str) -> int:
    if not isinstance(value, str):
        raise RPCError("Expected hex string result")
    return int(value, 16)


def _hex_to_bytes(value: str) -> bytes:
    if not isinstance(value, str):
        raise RPCError("Expected hex string result")
    normalized = value[2:] if value.startswith("0x") else value
    return bytes.fromhex(normalized) if normalized else b""
