from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Optional

from chain.client import ChainClient
from chain.signer import PendingTransaction, Signer, WalletProvider
from config import NetworkConfig, SwapOptions
from core.base_types import Token
from core.errors import (
    ApprovalFailed,
    ReceiptMissing,
    SwapError,
    TransactionRejected,
    Unexpected,
    WalletNotConnected,
)
from pricing.pair_graph import PairGraph
from pricing.quote import ComputedAmounts, QuoteCalculator, SwapSettings, Trade
from pricing.route import RouteFinder
from pricing.snapshot_source import SnapshotSource, SubgraphSnapshotSource

from .approval import ApprovalGate
from .encoder import DirectTarget, ExecutionEncoder, ExecutionTarget, ProxiedTarget
from .fee_registry import PartnerFeeRegistry, parse_partner_id

logger = logging.getLogger(__name__)


class LoaderPhase(Enum):
    CALCULATING_QUOTE = "calculating-quote"
    APPROVING = "approving"
    SWAPPING = "swapping"


@dataclass(frozen=True)
class ControllerState:
    """Replaced wholesale on every change; ``loader`` None means idle."""

    loader: Optional[LoaderPhase] = None
    error: Optional[str] = None
    approve_tx_hash: Optional[str] = None
    tx_hash: Optional[str] = None
    trade: Optional[Trade] = None
    computed: Optional[ComputedAmounts] = None


@dataclass(frozen=True)
class SwapInput:
    from_token: Optional[Token] = None
    to_token: Optional[Token] = None
    amount: Optional[str] = None
    is_output_amount: bool = False
    settings: SwapSettings = field(default_factory=SwapSettings)

    @property
    def is_quotable(self) -> bool:
        if self.from_token is None or self.to_token is None or self.amount is None:
            return False
        try:
            return Decimal(str(self.amount)) > 0
        except InvalidOperation:
            return False


ChangeCallback = Callable[[ControllerState, dict], Any]


class SwapController:
    """
    Quote -> approve -> swap, as one observable state machine.

    Every state change calls each subscriber with (new_state, patch) before
    the triggering call returns. Concurrent ``set_data`` calls are not
    serialized; a slow earlier quote can land after a faster later one.
    """

    def __init__(
        self,
        network: NetworkConfig,
        options: Optional[SwapOptions] = None,
        wallet: Optional[WalletProvider] = None,
        client: Optional[ChainClient] = None,
        snapshot_source: Optional[SnapshotSource] = None,
    ):
        self.network = network
        self.options = options or SwapOptions()
        self.wallet = wallet
        self.client = client or ChainClient([network.rpc_url])
        self.source = snapshot_source or SubgraphSnapshotSource(network.graph_endpoint)

        partner_id = parse_partner_id(self.options.partner_key)
        target: ExecutionTarget
        if network.proxy_address is not None:
            target = ProxiedTarget(network.proxy_address, partner_id)
        else:
            target = DirectTarget(network.router_address)

        self.graph = PairGraph(network.chain_id, fee_bps=network.pool_fee_bps)
        self.fees = PartnerFeeRegistry(self.client, network.proxy_address, partner_id)
        self.quotes = QuoteCalculator(
            self.graph,
            RouteFinder(self.graph, self.options.max_hops),
            network.wrapped_token,
            self.fees,
        )
        self.approvals = ApprovalGate(self.client, target.spender, network.chain_id)
        self.encoder = ExecutionEncoder(target, network.chain_id, self.fees.fee_enabled)

        self._state = ControllerState()
        self._input = SwapInput(
            settings=SwapSettings(network.default_slippage, network.default_deadline)
        )
        self._listeners: list[ChangeCallback] = []
        if self.options.on_change is not None:
            self._listeners.append(self.options.on_change)
        self._tasks: list[asyncio.Task] = []

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        """Launch background pair and partner-fee loading."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self.graph.run(
                    self.source.fetch_pairs,
                    interval=self.options.refresh_pairs_interval,
                    backoff=self.options.refresh_backoff,
                    on_refresh=self._after_refresh,
                )
            ),
            asyncio.create_task(self.fees.run(backoff=self.options.refresh_backoff)),
        ]

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def __aenter__(self) -> "SwapController":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- observation ---------------------------------------------------

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def get_state(self) -> ControllerState:
        return self._state

    @property
    def input(self) -> SwapInput:
        return self._input

    def _set_change(self, **patch: Any) -> None:
        self._state = replace(self._state, **patch)
        for listener in list(self._listeners):
            try:
                listener(self._state, patch)
            except Exception:
                logger.exception("change listener failed")

    # -- wallet --------------------------------------------------------

    async def connect_wallet(self) -> str:
        if self.wallet is None:
            raise WalletNotConnected("No wallet provider configured")
        return await asyncio.to_thread(self.wallet.connect)

    def disconnect_wallet(self) -> None:
        if self.wallet is not None:
            self.wallet.disconnect()

    def _signer(self) -> Signer:
        signer = self.wallet.get_signer() if self.wallet is not None else None
        if signer is None:
            raise WalletNotConnected("Wallet not connected")
        return signer

    # -- quoting -------------------------------------------------------

    async def get_partner_fee(self) -> Decimal:
        """Partner fee in percent (100 bps -> 1)."""
        return await self.fees.partner_fee_percent()

    async def get_tokens_from_graph(
        self, limit: Optional[int] = 100, search: Optional[str] = None
    ) -> list[Token]:
        await self.graph.wait_until_ready()
        return self.graph.tokens(limit=limit, search=search)

    async def set_data(self, **changes: Any) -> ControllerState:
        """
        Merge trade parameters and re-quote when tokens and a positive
        amount are present. ``settings`` may be a SwapSettings or a dict of
        the fields to change.
        """
        settings = changes.pop("settings", None)
        if isinstance(settings, dict):
            settings = replace(self._input.settings, **settings)
        if settings is not None:
            changes["settings"] = settings
        if changes.get("amount") is not None:
            changes["amount"] = str(changes["amount"])
        self._input = replace(self._input, **changes)
        await self.calculate_quote_if_needed()
        return self._state

    async def calculate_quote_if_needed(self) -> None:
        current = self._input
        if not current.is_quotable:
            if self._state.trade is not None or self._state.computed is not None:
                self._set_change(trade=None, computed=None)
            return
        self._set_change(loader=LoaderPhase.CALCULATING_QUOTE, error=None)
        try:
            quote = await self.quotes.calculate(
                current.from_token,
                current.to_token,
                current.amount,
                is_output_amount=current.is_output_amount,
                settings=current.settings,
            )
        except Exception as exc:
            logger.warning("quote failed: %s", exc)
            self._set_change(error=str(exc), loader=None, trade=None, computed=None)
            return
        self._set_change(trade=quote.trade, computed=quote.computed, loader=None)

    async def _after_refresh(self) -> None:
        if self.options.update_quote_after_refresh and self.graph.refresh_count > 1:
            await self.calculate_quote_if_needed()

    # -- execution -----------------------------------------------------

    async def approve_if_needed(self) -> Optional[str]:
        """Approval tx hash once confirmed, or None if no approval was needed."""
        try:
            trade, computed = self._require_quote()
            signer = self._signer()
            self._set_change(loader=LoaderPhase.APPROVING, error=None)
            tx_hash = await self._approve(trade, computed, signer)
            self._set_change(loader=None)
            return tx_hash
        except SwapError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            raise self._fail(Unexpected(str(exc) or repr(exc))) from exc

    async def swap(self) -> str:
        """Approve if needed, submit the swap, wait for a successful receipt."""
        try:
            self._set_change(tx_hash=None, approve_tx_hash=None, error=None)
            trade, computed = self._require_quote()
            signer = self._signer()

            self._set_change(loader=LoaderPhase.APPROVING)
            await self._approve(trade, computed, signer)

            self._set_change(loader=LoaderPhase.SWAPPING)
            pending = await self.encoder.execute(
                trade, computed, signer, self._input.settings.deadline
            )
            self._set_change(tx_hash=pending.tx_hash)
            receipt = await pending.wait()
            if receipt is None:
                raise ReceiptMissing(pending.tx_hash)
            if not receipt.status:
                raise TransactionRejected(pending.tx_hash)

            self._set_change(loader=None)
            logger.info("swap confirmed %s in block %d", pending.tx_hash, receipt.block_number)
            return pending.tx_hash
        except SwapError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            raise self._fail(Unexpected(str(exc) or repr(exc))) from exc

    async def _approve(
        self, trade: Trade, computed: ComputedAmounts, signer: Signer
    ) -> Optional[str]:
        pending: Optional[PendingTransaction] = await self.approvals.approve_if_needed(
            trade.token_in, computed.amount_in_bound, signer
        )
        if pending is None:
            return None
        self._set_change(approve_tx_hash=pending.tx_hash)
        receipt = await pending.wait()
        if receipt is None:
            raise ReceiptMissing(pending.tx_hash)
        if not receipt.status:
            raise ApprovalFailed(f"Approval {pending.tx_hash} rejected")
        return pending.tx_hash

    def _require_quote(self) -> tuple[Trade, ComputedAmounts]:
        trade, computed = self._state.trade, self._state.computed
        if trade is None or computed is None:
            raise SwapError("Trade info missing - calculate quote first")
        return trade, computed

    def _fail(self, error: SwapError) -> SwapError:
        logger.error("swap flow failed: %s", error)
        self._set_change(error=str(error), loader=None)
        return error
