from __future__ import annotations

import asyncio
import logging
from typing import Optional

from chain.abi import encode_call
from chain.client import ChainClient
from chain.signer import PendingTransaction, Signer
from core.base_types import MAX_UINT256, Address, Token, TokenAmount, TransactionRequest
from core.errors import WalletNotConnected

logger = logging.getLogger(__name__)


class ApprovalGate:
    """
    Raises the spender's allowance before a swap when it is too low.

    Approvals are always for the maximum uint256 so later trades of the same
    token skip this step. Native currency never needs approval.
    """

    def __init__(self, client: ChainClient, spender: Address, chain_id: int = 1):
        self._client = client
        self.spender = spender
        self._chain_id = chain_id

    async def allowance(self, token: Token, owner: str) -> int:
        return await asyncio.to_thread(self._read_allowance, token, owner)

    async def needs_approval(self, token: Token, amount_raw: int, owner: str) -> bool:
        if token.is_native:
            return False
        current = await self.allowance(token, owner)
        logger.debug(
            "allowance %s for %s: %d (need %d)",
            token.symbol,
            self.spender.checksum,
            current,
            amount_raw,
        )
        return current < amount_raw

    async def approve_if_needed(
        self, token: Token, amount_raw: int, signer: Optional[Signer]
    ) -> Optional[PendingTransaction]:
        """Pending approval, or None when the allowance already covers ``amount_raw``."""
        if signer is None:
            raise WalletNotConnected("Wallet not connected")
        owner = signer.get_address()
        if not await self.needs_approval(token, amount_raw, owner):
            return None

        request = TransactionRequest(
            to=token.address,
            value=TokenAmount.native(),
            data=encode_call(
                "approve(address,uint256)",
                ["address", "uint256"],
                [self.spender.checksum, MAX_UINT256],
            ),
            chain_id=self._chain_id,
            sender=Address.from_string(owner),
        )
        tx_hash = await asyncio.to_thread(signer.send_transaction, request)
        logger.info("approve %s for %s: %s", token.symbol, self.spender.checksum, tx_hash)
        return PendingTransaction(tx_hash=tx_hash, signer=signer)

    def _read_allowance(self, token: Token, owner: str) -> int:
        data = encode_call(
            "allowance(address,address)",
            ["address", "address"],
            [Address.from_string(owner).checksum, self.spender.checksum],
        )
        raw = self._client.call(
            TransactionRequest(
                to=token.address,
                value=TokenAmount.native(),
                data=data,
                chain_id=self._chain_id,
            )
        )
        return int.from_bytes(raw, "big") if raw else 0
