from __future__ import annotations

import logging
from typing import Optional

from core.base_types import Token
from core.errors import InsufficientLiquidity, RoutingUnavailable

from .pair_graph import LiquidityPair, PairGraph

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 3


class Route:
    """Represents a swap route through one or more pools."""

    def __init__(self, pools: list[LiquidityPair], path: list[Token]):
        if not pools:
            raise ValueError("route needs at least one pool")
        if len(path) != len(pools) + 1:
            raise ValueError("path must have one more token than pools")
        self.pools = pools
        self.path = path  # token_in → intermediate... → token_out

    @property
    def num_hops(self) -> int:
        return len(self.pools)

    @property
    def token_in(self) -> Token:
        return self.path[0]

    @property
    def token_out(self) -> Token:
        return self.path[-1]

    @property
    def addresses(self) -> list[str]:
        return [token.address.checksum for token in self.path]

    def get_output(self, amount_in: int) -> int:
        """Simulate full route, return final output."""
        return self.get_intermediate_amounts(amount_in)[-1]

    def get_intermediate_amounts(self, amount_in: int) -> list[int]:
        """
        Return amount at each step: [input, after_hop1, after_hop2, ...]

        Each hop quotes against a simulated copy of its pool that already
        carries the effect of earlier hops of this route.
        """
        amounts = [amount_in]
        simulated: dict[str, LiquidityPair] = {}
        for pool, token in zip(self.pools, self.path):
            current = simulated.get(pool.pair_id, pool)
            out = current.get_amount_out(amounts[-1], token)
            simulated[pool.pair_id] = current.after_swap(token, amounts[-1], out)
            amounts.append(out)
        return amounts

    def get_input(self, amount_out: int) -> int:
        """Input needed for the route to deliver ``amount_out``."""
        return self.get_required_amounts(amount_out)[0]

    def get_required_amounts(self, amount_out: int) -> list[int]:
        """Backwards counterpart of ``get_intermediate_amounts``."""
        amounts = [amount_out]
        simulated: dict[str, LiquidityPair] = {}
        for index in range(self.num_hops - 1, -1, -1):
            pool = self.pools[index]
            token_in, token_out = self.path[index], self.path[index + 1]
            current = simulated.get(pool.pair_id, pool)
            needed = current.get_amount_in(amounts[0], token_out)
            simulated[pool.pair_id] = current.after_swap(token_in, needed, amounts[0])
            amounts.insert(0, needed)
        return amounts

    def __repr__(self) -> str:
        return "Route(" + " -> ".join(token.symbol for token in self.path) + ")"


class RouteFinder:
    """
    Finds optimal routes between tokens.

    Exhaustive over simple paths (no repeated token) up to ``max_hops``.
    """

    def __init__(self, graph: PairGraph, max_hops: int = DEFAULT_MAX_HOPS):
        if max_hops < 1:
            raise ValueError("max_hops must be >= 1")
        self.graph = graph
        self.max_hops = max_hops

    def find_all_routes(
        self, token_in: Token, token_out: Token, max_hops: Optional[int] = None
    ) -> list[Route]:
        """All simple routes, shortest first."""
        self._require_graph()
        limit = max_hops or self.max_hops
        if token_in == token_out:
            return []

        routes: list[Route] = []

        def walk(token: Token, pools: list[LiquidityPair], path: list[Token]) -> None:
            if len(pools) == limit:
                return
            for pool in self.graph.pairs_for(token):
                nxt = pool.other(token)
                if any(nxt.address == seen.address for seen in path):
                    continue
                if nxt.address == token_out.address:
                    routes.append(Route(pools + [pool], path + [nxt]))
                    continue
                walk(nxt, pools + [pool], path + [nxt])

        walk(token_in, [], [token_in])
        routes.sort(key=lambda r: r.num_hops)
        return routes

    def best_route_exact_in(
        self, token_in: Token, token_out: Token, amount_in: int
    ) -> Optional[tuple[Route, int]]:
        """Route maximizing output for ``amount_in``; (route, amount_out)."""
        best: Optional[tuple[Route, int]] = None
        for route in self.find_all_routes(token_in, token_out):
            try:
                out = route.get_output(amount_in)
            except InsufficientLiquidity:
                continue
            if out <= 0:
                continue
            if best is None or out > best[1]:
                best = (route, out)
        if best is not None:
            logger.debug("best exact-in %r -> %d", best[0], best[1])
        return best

    def best_route_exact_out(
        self, token_in: Token, token_out: Token, amount_out: int
    ) -> Optional[tuple[Route, int]]:
        """Route minimizing the input needed for ``amount_out``; (route, amount_in)."""
        best: Optional[tuple[Route, int]] = None
        for route in self.find_all_routes(token_in, token_out):
            try:
                needed = route.get_input(amount_out)
            except InsufficientLiquidity:
                continue
            if best is None or needed < best[1]:
                best = (route, needed)
        if best is not None:
            logger.debug("best exact-out %r <- %d", best[0], best[1])
        return best

    def _require_graph(self) -> None:
        if not self.graph.is_ready:
            raise RoutingUnavailable("Pairs not loaded yet, wait for initialization")
