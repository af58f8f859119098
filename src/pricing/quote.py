"""
Quote calculator: best route + AMM math + partner fee + slippage bound.

Exact-in (user fixes the sell amount):
    out        = route output for the rounded raw input
    adjusted   = out * (10000 - partner_bps) // 10000
    min_out    = adjusted - adjusted * slippage_bps // 10000

Exact-out (user fixes the buy amount):
    gross      = ceil(target * 10000 / (10000 - partner_bps))
    amount_in  = route input needed for ``gross``
    max_in     = amount_in + amount_in * slippage_bps // 10000

Nothing is cached: every call recomputes from the live pair graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Protocol

from core.base_types import Token
from core.errors import NoRouteFound

from .amm_math import BPS_DENOMINATOR, apply_bps_discount, apply_bps_premium
from .pair_graph import PairGraph
from .route import Route, RouteFinder

logger = logging.getLogger(__name__)


class TradeType(Enum):
    EXACT_INPUT = "exact-in"
    EXACT_OUTPUT = "exact-out"


@dataclass(frozen=True)
class SwapSettings:
    """Slippage in percent (0.5 means 0.5%) and deadline in minutes."""

    max_slippage: Decimal = Decimal("0.5")
    deadline: int = 20

    def __post_init__(self) -> None:
        if isinstance(self.max_slippage, float):
            raise TypeError("max_slippage must be str or Decimal, not float")
        try:
            slippage = Decimal(str(self.max_slippage))
        except InvalidOperation as exc:
            raise ValueError(f"max_slippage is not a number: {self.max_slippage!r}") from exc
        if not slippage.is_finite() or slippage < 0 or slippage >= 100:
            raise ValueError("max_slippage must be in [0, 100)")
        if self.deadline <= 0:
            raise ValueError("deadline must be positive")
        object.__setattr__(self, "max_slippage", slippage)

    @property
    def slippage_bps(self) -> int:
        return int(self.max_slippage * 100)


@dataclass(frozen=True)
class Trade:
    """
    Chosen route and raw amounts.

    ``token_in``/``token_out`` are the caller's tokens (possibly native);
    the route runs over their wrapped stand-ins.
    """

    route: Route
    trade_type: TradeType
    token_in: Token
    token_out: Token
    amount_in: int
    amount_out: int

    @property
    def is_exact_out(self) -> bool:
        return self.trade_type is TradeType.EXACT_OUTPUT


@dataclass(frozen=True)
class ComputedAmounts:
    amount_in: str
    amount_out: str
    amount_in_raw: int
    amount_out_raw: int
    max_amount_in: Optional[str] = None
    max_amount_in_raw: Optional[int] = None
    min_amount_out: Optional[str] = None
    min_amount_out_raw: Optional[int] = None

    @property
    def amount_in_bound(self) -> int:
        """What the swap call may spend at most."""
        if self.max_amount_in_raw is not None:
            return self.max_amount_in_raw
        return self.amount_in_raw

    @property
    def amount_out_bound(self) -> int:
        """What the swap call must deliver at least."""
        if self.min_amount_out_raw is not None:
            return self.min_amount_out_raw
        return self.amount_out_raw


@dataclass(frozen=True)
class Quote:
    trade: Trade
    computed: ComputedAmounts


class PartnerFeeSource(Protocol):
    async def partner_fee_bps(self) -> int: ...


class QuoteCalculator:
    def __init__(
        self,
        graph: PairGraph,
        finder: RouteFinder,
        wrapped_token: Token,
        fee_source: Optional[PartnerFeeSource] = None,
    ):
        self.graph = graph
        self.finder = finder
        self.wrapped_token = wrapped_token
        self.fee_source = fee_source

    async def calculate(
        self,
        token_in: Token,
        token_out: Token,
        amount: str | Decimal,
        is_output_amount: bool = False,
        settings: Optional[SwapSettings] = None,
    ) -> Quote:
        settings = settings or SwapSettings()
        await self.graph.wait_until_ready()
        partner_bps = await self._partner_fee_bps()
        if is_output_amount:
            return self._exact_out(token_in, token_out, amount, partner_bps, settings)
        return self._exact_in(token_in, token_out, amount, partner_bps, settings)

    def _exact_in(
        self,
        token_in: Token,
        token_out: Token,
        amount: str | Decimal,
        partner_bps: int,
        settings: SwapSettings,
    ) -> Quote:
        raw_in = token_in.parse_amount(amount)
        if raw_in <= 0:
            raise ValueError("amount must be positive")

        best = self.finder.best_route_exact_in(
            self._graph_token(token_in), self._graph_token(token_out), raw_in
        )
        if best is None:
            raise NoRouteFound("No trade path found for the given tokens and amount")
        route, raw_out = best

        if partner_bps:
            raw_out = raw_out * (BPS_DENOMINATOR - partner_bps) // BPS_DENOMINATOR
        min_out = apply_bps_discount(raw_out, settings.slippage_bps)

        computed = ComputedAmounts(
            amount_in=_fmt(raw_in, token_in),
            amount_out=_fmt(raw_out, token_out),
            amount_in_raw=raw_in,
            amount_out_raw=raw_out,
            min_amount_out=_fmt(min_out, token_out),
            min_amount_out_raw=min_out,
        )
        trade = Trade(route, TradeType.EXACT_INPUT, token_in, token_out, raw_in, raw_out)
        logger.info(
            "quote exact-in %s %s -> %s %s via %r (min %s)",
            computed.amount_in,
            token_in.symbol,
            computed.amount_out,
            token_out.symbol,
            route,
            computed.min_amount_out,
        )
        return Quote(trade=trade, computed=computed)

    def _exact_out(
        self,
        token_in: Token,
        token_out: Token,
        amount: str | Decimal,
        partner_bps: int,
        settings: SwapSettings,
    ) -> Quote:
        target = token_out.parse_amount(amount)
        if target <= 0:
            raise ValueError("amount must be positive")

        gross = inflate_for_partner_fee(target, partner_bps)
        best = self.finder.best_route_exact_out(
            self._graph_token(token_in), self._graph_token(token_out), gross
        )
        if best is None:
            raise NoRouteFound("No trade path found for the given tokens and amount")
        route, raw_in = best
        max_in = apply_bps_premium(raw_in, settings.slippage_bps)

        computed = ComputedAmounts(
            amount_in=_fmt(raw_in, token_in),
            amount_out=_fmt(target, token_out, trim=True),
            amount_in_raw=raw_in,
            amount_out_raw=target,
            max_amount_in=_fmt(max_in, token_in),
            max_amount_in_raw=max_in,
        )
        trade = Trade(route, TradeType.EXACT_OUTPUT, token_in, token_out, raw_in, target)
        logger.info(
            "quote exact-out %s %s <- %s %s via %r (max %s)",
            computed.amount_out,
            token_out.symbol,
            computed.amount_in,
            token_in.symbol,
            route,
            computed.max_amount_in,
        )
        return Quote(trade=trade, computed=computed)

    async def _partner_fee_bps(self) -> int:
        if self.fee_source is None:
            return 0
        return await self.fee_source.partner_fee_bps()

    def _graph_token(self, token: Token) -> Token:
        # native currency is never a graph node; route over the wrapped token
        if token.is_native:
            token = self.wrapped_token
        return self.graph.token(token.address) or token


def inflate_for_partner_fee(target: int, partner_bps: int) -> int:
    """Smallest gross amount that still leaves ``target`` after the fee."""
    if not partner_bps:
        return target
    numerator = target * BPS_DENOMINATOR
    denominator = BPS_DENOMINATOR - partner_bps
    return -(-numerator // denominator)


def _fmt(raw: int, token: Token, trim: bool = False) -> str:
    return token.format_amount(raw, trim=trim)
