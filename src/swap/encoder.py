"""
Swap calldata for the router, optionally framed for the fee proxy.

Proxy framing appended after the ABI-encoded call:

    call | aux blobs | uint8 blob count | bytes16(keccak("permit"))
         [ | bytes32 partner id | bytes16(keccak("is_partner_fee")) ]

The partner section is present only when a partner id is configured.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence, Union

from eth_utils import keccak

from chain.abi import encode_call
from chain.signer import PendingTransaction, Signer
from core.base_types import Address, TokenAmount, TransactionRequest
from core.errors import WalletNotConnected
from pricing.quote import ComputedAmounts, Trade, TradeType

logger = logging.getLogger(__name__)

PROXY_MARKER = keccak(text="permit")[:16]
PARTNER_MARKER = keccak(text="is_partner_fee")[:16]


class CallShape(Enum):
    NATIVE_IN = "native-in"
    NATIVE_OUT = "native-out"
    TOKEN_ONLY = "token-only"


_ADDR_PATH_TAIL = ["address[]", "address", "uint256"]

# (signature, leading amount arg types)
SWAP_FUNCTIONS: dict[tuple[TradeType, CallShape], tuple[str, list[str]]] = {
    (TradeType.EXACT_INPUT, CallShape.NATIVE_IN): (
        "swapExactETHForTokens(uint256,address[],address,uint256)",
        ["uint256"],
    ),
    (TradeType.EXACT_INPUT, CallShape.NATIVE_OUT): (
        "swapExactTokensForETH(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256"],
    ),
    (TradeType.EXACT_INPUT, CallShape.TOKEN_ONLY): (
        "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256"],
    ),
    (TradeType.EXACT_OUTPUT, CallShape.NATIVE_IN): (
        "swapETHForExactTokens(uint256,address[],address,uint256)",
        ["uint256"],
    ),
    (TradeType.EXACT_OUTPUT, CallShape.NATIVE_OUT): (
        "swapTokensForExactETH(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256"],
    ),
    (TradeType.EXACT_OUTPUT, CallShape.TOKEN_ONLY): (
        "swapTokensForExactTokens(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256"],
    ),
}


@dataclass(frozen=True)
class DirectTarget:
    router: Address

    @property
    def spender(self) -> Address:
        return self.router


@dataclass(frozen=True)
class ProxiedTarget:
    proxy: Address
    partner_id: Optional[bytes] = None

    @property
    def spender(self) -> Address:
        return self.proxy


ExecutionTarget = Union[DirectTarget, ProxiedTarget]


def call_shape(trade: Trade) -> CallShape:
    if trade.token_in.is_native:
        return CallShape.NATIVE_IN
    if trade.token_out.is_native:
        return CallShape.NATIVE_OUT
    return CallShape.TOKEN_ONLY


def encode_swap_call(
    trade_type: TradeType,
    shape: CallShape,
    amount_in: int,
    amount_out: int,
    path: list[str],
    recipient: str,
    deadline: int,
) -> bytes:
    """
    ``amount_in``/``amount_out`` are the bounds the router enforces: for
    exact-in they are (exact input, minimum output), for exact-out
    (maximum input, exact output). Native input is carried as value, not
    as an argument.
    """
    signature, amount_types = SWAP_FUNCTIONS[(trade_type, shape)]
    if trade_type is TradeType.EXACT_INPUT:
        amounts = [amount_out] if shape is CallShape.NATIVE_IN else [amount_in, amount_out]
    else:
        amounts = [amount_out] if shape is CallShape.NATIVE_IN else [amount_out, amount_in]
    return encode_call(
        signature,
        amount_types + _ADDR_PATH_TAIL,
        amounts + [path, recipient, deadline],
    )


def wrap_proxy_calldata(
    call: bytes,
    aux_blobs: Sequence[bytes] = (),
    partner_id: Optional[bytes] = None,
) -> bytes:
    if len(aux_blobs) > 0xFF:
        raise ValueError("at most 255 auxiliary blobs")
    parts = [call, *aux_blobs, bytes([len(aux_blobs)]), PROXY_MARKER]
    if partner_id is not None:
        if len(partner_id) != 32:
            raise ValueError("partner id must be 32 bytes")
        parts += [partner_id, PARTNER_MARKER]
    return b"".join(parts)


class ExecutionEncoder:
    """
    Builds and submits the swap transaction for a computed trade.

    The target is resolved once: a ``DirectTarget`` sends plain router
    calls to the router; a ``ProxiedTarget`` sends framed calls to the proxy,
    naming the proxy as recipient while the platform fee switch is on.
    """

    def __init__(
        self,
        target: ExecutionTarget,
        chain_id: int = 1,
        fee_enabled: Optional[Callable[[], Awaitable[bool]]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.target = target
        self._chain_id = chain_id
        self._clock = clock
        if isinstance(target, ProxiedTarget):
            self._to = target.proxy
            self._finish = lambda call: wrap_proxy_calldata(
                call, partner_id=target.partner_id
            )
            self._fee_enabled = fee_enabled
        else:
            self._to = target.router
            self._finish = lambda call: call
            self._fee_enabled = None

    async def recipient(self, user: str) -> str:
        if self._fee_enabled is not None and await self._fee_enabled():
            return self._to.checksum
        return Address.from_string(user).checksum

    async def build(
        self,
        trade: Trade,
        computed: ComputedAmounts,
        sender: str,
        deadline_minutes: int,
    ) -> TransactionRequest:
        shape = call_shape(trade)
        if trade.is_exact_out:
            amount_in, amount_out = computed.amount_in_bound, computed.amount_out_raw
        else:
            amount_in, amount_out = computed.amount_in_raw, computed.amount_out_bound
        deadline = int(self._clock()) + deadline_minutes * 60

        call = encode_swap_call(
            trade.trade_type,
            shape,
            amount_in,
            amount_out,
            trade.route.addresses,
            await self.recipient(sender),
            deadline,
        )
        value = amount_in if shape is CallShape.NATIVE_IN else 0
        return TransactionRequest(
            to=self._to,
            value=TokenAmount.native(value),
            data=self._finish(call),
            chain_id=self._chain_id,
            sender=Address.from_string(sender),
        )

    async def execute(
        self,
        trade: Trade,
        computed: ComputedAmounts,
        signer: Optional[Signer],
        deadline_minutes: int,
    ) -> PendingTransaction:
        """Submit and return immediately; confirmation is the caller's job."""
        if signer is None:
            raise WalletNotConnected("Wallet not connected")
        request = await self.build(trade, computed, signer.get_address(), deadline_minutes)
        tx_hash = await asyncio.to_thread(signer.send_transaction, request)
        logger.info(
            "swap %s %r submitted to %s: %s",
            trade.trade_type.value,
            trade.route,
            self._to.checksum,
            tx_hash,
        )
        return PendingTransaction(tx_hash=tx_hash, signer=signer)
