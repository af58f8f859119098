"""In-memory liquidity pair graph, rebuilt wholesale from reserve snapshots."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from core.base_types import Address, Token, TokenAmount
from core.errors import InsufficientLiquidity

from .amm_math import DEFAULT_POOL_FEE_BPS, input_for, output_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiquidityPair:
    """
    Two tokens and their reserves, in smallest units.

    Identity is unordered (A/B is B/A); reserve lookups are keyed by the token
    being queried. Immutable: simulated swaps return a new pair.
    """

    pair_id: str
    token_a: Token
    token_b: Token
    reserve_a: int
    reserve_b: int
    fee_bps: int = DEFAULT_POOL_FEE_BPS

    def __post_init__(self) -> None:
        if self.token_a.address == self.token_b.address:
            raise ValueError("token_a and token_b must be different")
        if not isinstance(self.reserve_a, int) or not isinstance(self.reserve_b, int):
            raise TypeError("reserves must be int")
        if self.reserve_a < 0 or self.reserve_b < 0:
            raise ValueError("reserves must be non-negative")

    @property
    def key(self) -> frozenset:
        return pair_key(self.token_a.address, self.token_b.address)

    @property
    def is_usable(self) -> bool:
        return self.reserve_a > 0 and self.reserve_b > 0

    def involves(self, token: Token) -> bool:
        return token.address in (self.token_a.address, self.token_b.address)

    def other(self, token: Token) -> Token:
        if token.address == self.token_a.address:
            return self.token_b
        if token.address == self.token_b.address:
            return self.token_a
        raise ValueError("token not in pair")

    def reserve_of(self, token: Token) -> int:
        if token.address == self.token_a.address:
            return self.reserve_a
        if token.address == self.token_b.address:
            return self.reserve_b
        raise ValueError("token not in pair")

    def get_amount_out(self, amount_in: int, token_in: Token) -> int:
        return output_for(
            amount_in,
            self.reserve_of(token_in),
            self.reserve_of(self.other(token_in)),
            self.fee_bps,
        )

    def get_amount_in(self, amount_out: int, token_out: Token) -> int:
        return input_for(
            amount_out,
            self.reserve_of(self.other(token_out)),
            self.reserve_of(token_out),
            self.fee_bps,
        )

    def after_swap(self, token_in: Token, amount_in: int, amount_out: int) -> "LiquidityPair":
        """Pair with reserves moved by a swap of ``amount_in`` for ``amount_out``."""
        reserve_out = self.reserve_of(self.other(token_in))
        if amount_out >= reserve_out:
            raise InsufficientLiquidity("insufficient liquidity for this trade")
        if token_in.address == self.token_a.address:
            return replace(
                self,
                reserve_a=self.reserve_a + amount_in,
                reserve_b=self.reserve_b - amount_out,
            )
        return replace(
            self,
            reserve_a=self.reserve_a - amount_out,
            reserve_b=self.reserve_b + amount_in,
        )


def pair_key(address_a: Address, address_b: Address) -> frozenset:
    return frozenset((address_a.lower, address_b.lower))


@dataclass(frozen=True)
class _GraphSnapshot:
    pairs: tuple[LiquidityPair, ...] = ()
    tokens: Mapping[str, Token] = field(default_factory=dict)
    by_key: Mapping[frozenset, LiquidityPair] = field(default_factory=dict)
    adjacency: Mapping[str, tuple[LiquidityPair, ...]] = field(default_factory=dict)


class PairGraph:
    """
    Current reserve snapshot plus token registry.

    ``refresh`` builds a complete new snapshot and swaps it in with a single
    assignment, so readers always see either the old or the new graph.
    Readers that need data call ``wait_until_ready()``, which returns once the
    first refresh has succeeded.
    """

    def __init__(self, chain_id: int = 0, fee_bps: int = DEFAULT_POOL_FEE_BPS):
        self.chain_id = chain_id
        self.fee_bps = fee_bps
        self._snapshot = _GraphSnapshot()
        self._ready = asyncio.Event()
        self._refresh_count = 0

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def refresh_count(self) -> int:
        return self._refresh_count

    async def wait_until_ready(self) -> None:
        await self._ready.wait()

    def refresh(self, snapshot: Iterable[Mapping[str, Any]]) -> int:
        """Replace all pairs and tokens. Returns the number of pairs loaded."""
        pairs: list[LiquidityPair] = []
        tokens: dict[str, Token] = {}
        for entry in snapshot:
            try:
                pair = self._parse_pair(entry)
            except (ValueError, TypeError, KeyError, ArithmeticError) as exc:
                logger.warning("malformed pair %s skipped: %s", _entry_id(entry), exc)
                continue
            if pair is None:
                continue
            pairs.append(pair)
            tokens.setdefault(pair.token_a.address.lower, pair.token_a)
            tokens.setdefault(pair.token_b.address.lower, pair.token_b)

        by_key: dict[frozenset, LiquidityPair] = {}
        adjacency: dict[str, list[LiquidityPair]] = {}
        for pair in pairs:
            by_key.setdefault(pair.key, pair)
            if not pair.is_usable:
                continue
            adjacency.setdefault(pair.token_a.address.lower, []).append(pair)
            adjacency.setdefault(pair.token_b.address.lower, []).append(pair)

        self._snapshot = _GraphSnapshot(
            pairs=tuple(pairs),
            tokens=MappingProxyType(tokens),
            by_key=MappingProxyType(by_key),
            adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
        )
        self._refresh_count += 1
        self._ready.set()
        logger.info("pair graph refreshed: %d pairs, %d tokens", len(pairs), len(tokens))
        return len(pairs)

    async def run(
        self,
        fetch: Callable[[], Iterable[Mapping[str, Any]]],
        interval: Optional[float] = None,
        backoff: float = 1.0,
        on_refresh: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        """
        Load snapshots from ``fetch`` (a blocking callable, run in a thread).

        Failures are logged and retried after ``backoff`` seconds, forever.
        With ``interval`` set, keeps re-snapshotting after each success;
        otherwise returns after the first successful load.
        """
        while True:
            try:
                snapshot = await asyncio.to_thread(fetch)
                self.refresh(snapshot)
            except Exception:
                logger.exception("pair graph refresh failed, retrying in %.1fs", backoff)
                await asyncio.sleep(backoff)
                continue
            if on_refresh is not None:
                await on_refresh()
            if interval is None:
                return
            await asyncio.sleep(interval)

    @property
    def pairs(self) -> tuple[LiquidityPair, ...]:
        return self._snapshot.pairs

    def token(self, address: Address | str) -> Optional[Token]:
        """Registry lookup, case-insensitive on the address."""
        lowered = address.lower() if isinstance(address, str) else address.lower
        return self._snapshot.tokens.get(lowered)

    def tokens(self, limit: Optional[int] = None, search: Optional[str] = None) -> list[Token]:
        found = list(self._snapshot.tokens.values())
        if search:
            needle = search.lower()
            found = [
                t for t in found if needle in t.symbol.lower() or needle in t.name.lower()
            ]
        if limit is not None:
            found = found[:limit]
        return found

    def pair(self, token_a: Token, token_b: Token) -> Optional[LiquidityPair]:
        return self._snapshot.by_key.get(pair_key(token_a.address, token_b.address))

    def pairs_for(self, token: Token) -> tuple[LiquidityPair, ...]:
        """Usable pairs touching ``token``."""
        return self._snapshot.adjacency.get(token.address.lower, ())

    def _parse_pair(self, entry: Mapping[str, Any]) -> Optional[LiquidityPair]:
        if not isinstance(entry, Mapping):
            raise TypeError(f"Invalid pair entry: {entry!r}")
        pair_id = _entry_id(entry)
        token_a = self._parse_token(entry.get("tokenA") or entry.get("token0"))
        token_b = self._parse_token(entry.get("tokenB") or entry.get("token1"))
        raw_a = _first_present(entry, "reserveA", "reserve0")
        raw_b = _first_present(entry, "reserveB", "reserve1")
        if raw_a is None or raw_b is None:
            logger.warning("pair %s has no reserves, skipped", pair_id)
            return None
        return LiquidityPair(
            pair_id=pair_id,
            token_a=token_a,
            token_b=token_b,
            reserve_a=_parse_reserve(raw_a, token_a.decimals),
            reserve_b=_parse_reserve(raw_b, token_b.decimals),
            fee_bps=self.fee_bps,
        )

    def _parse_token(self, data: Any) -> Token:
        if isinstance(data, Token):
            return data
        if not isinstance(data, Mapping):
            raise ValueError(f"Invalid token entry: {data!r}")
        return Token(
            address=Address.from_string(str(data.get("address") or data.get("id"))),
            symbol=str(data.get("symbol", "")),
            name=str(data.get("name", "")),
            decimals=int(data["decimals"]),
            chain_id=self.chain_id,
        )


def _entry_id(entry: Any) -> str:
    if not isinstance(entry, Mapping):
        return "?"
    return str(entry.get("pairId") or entry.get("id") or "")


def _first_present(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def _parse_reserve(value: Any, decimals: int) -> int:
    # ints are already in smallest units; strings are human decimals
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, (str, Decimal)):
        return TokenAmount.from_human_rounded(value, decimals).raw
    raise TypeError(f"Unsupported reserve value: {value!r}")
