"""Partner fee and platform fee switch, read once from the proxy contract."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from chain.abi import decode_result, encode_call
from chain.client import ChainClient
from core.base_types import Address, TokenAmount, TransactionRequest

logger = logging.getLogger(__name__)

PARTNER_FEE_BPS_DIVISOR = 10_000


def parse_partner_id(value: str | bytes | None) -> Optional[bytes]:
    """Opaque partner identifier as exactly 32 bytes (hex string or bytes)."""
    if value is None or value == "" or value == b"":
        return None
    if isinstance(value, str):
        normalized = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(normalized)
        except ValueError as exc:
            raise ValueError("partner id must be hex") from exc
    if len(value) != 32:
        raise ValueError("partner id must be 32 bytes")
    return bytes(value)


class PartnerFeeRegistry:
    """
    Caches ``partnerFee(partnerId)`` and ``feeEnabled()``.

    Values are loaded once; ``partner_fee_bps()`` and ``fee_enabled()`` wait
    for that load. Without a proxy there is no fee and the switch is off.
    """

    def __init__(
        self,
        client: Optional[ChainClient],
        proxy_address: Optional[Address],
        partner_id: Optional[bytes] = None,
    ):
        self._client = client
        self._proxy = proxy_address
        self._partner_id = partner_id
        self._fee_bps = 0
        self._fee_recipient: Optional[str] = None
        self._fee_enabled = False
        self._loaded = asyncio.Event()

    @property
    def is_loaded(self) -> bool:
        return self._loaded.is_set()

    @property
    def partner_id(self) -> Optional[bytes]:
        return self._partner_id

    async def load(self) -> None:
        client, proxy = self._client, self._proxy
        if client is not None and proxy is not None:
            fee_bps, recipient, enabled = await asyncio.to_thread(self._read, client, proxy)
            if not 0 <= fee_bps < PARTNER_FEE_BPS_DIVISOR:
                raise ValueError(f"partner fee out of range: {fee_bps}")
            self._fee_bps = fee_bps
            self._fee_recipient = recipient
            self._fee_enabled = enabled
        self._loaded.set()
        logger.info(
            "partner fee loaded: %d bps, fee switch %s",
            self._fee_bps,
            "on" if self._fee_enabled else "off",
        )

    async def run(self, backoff: float = 1.0) -> None:
        """``load`` with retry after ``backoff`` seconds until it succeeds."""
        while True:
            try:
                await self.load()
                return
            except Exception:
                logger.exception("partner fee load failed, retrying in %.1fs", backoff)
                await asyncio.sleep(backoff)

    async def partner_fee_bps(self) -> int:
        await self._loaded.wait()
        return self._fee_bps

    async def fee_enabled(self) -> bool:
        await self._loaded.wait()
        return self._fee_enabled

    async def partner_fee_percent(self) -> Decimal:
        bps = await self.partner_fee_bps()
        return Decimal(bps) * 100 / PARTNER_FEE_BPS_DIVISOR

    def _read(self, client: ChainClient, proxy: Address) -> tuple[int, Optional[str], bool]:
        fee_bps = 0
        recipient = None
        if self._partner_id is not None:
            raw = _eth_call(
                client,
                proxy,
                encode_call("partnerFee(bytes32)", ["bytes32"], [self._partner_id]),
            )
            recipient, fee_bps = decode_result(["address", "uint16"], raw)
        raw = _eth_call(client, proxy, encode_call("feeEnabled()", [], []))
        (enabled,) = decode_result(["bool"], raw)
        return int(fee_bps), recipient, bool(enabled)


def _eth_call(client: ChainClient, proxy: Address, data: bytes) -> bytes:
    return client.call(TransactionRequest(to=proxy, value=TokenAmount.native(), data=data))
