"""Core type definitions shared by the quote and execution modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from eth_utils.address import is_address, to_checksum_address

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2**256 - 1
NATIVE_DECIMALS = 18


@dataclass(frozen=True)
class Address:
    """
    EVM address, stored checksummed.

    Equality and hashing ignore case, and an ``Address`` also compares equal
    to a plain string spelling the same address, so subgraph ids (lowercase)
    and configured addresses (checksummed) can be mixed freely.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError("Address value must be a string")
        if not is_address(self.value):
            raise ValueError("Invalid Ethereum address")
        object.__setattr__(self, "value", to_checksum_address(self.value))

    @classmethod
    def from_string(cls, s: str) -> "Address":
        return cls(s)

    @property
    def checksum(self) -> str:
        return self.value

    @property
    def lower(self) -> str:
        return self.value.lower()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.lower == other.lower()
        return isinstance(other, Address) and self.lower == other.lower

    def __hash__(self) -> int:
        return hash(self.lower)


NATIVE_ADDRESS = Address(ZERO_ADDRESS)


@dataclass(frozen=True)
class Token:
    """
    ERC-20 token (or the native currency when ``address`` is the zero address).

    Two tokens are equal iff address and chain id match; symbol, name and
    decimals are metadata only.
    """

    address: Address
    symbol: str = field(compare=False)
    decimals: int = field(compare=False)
    name: str = field(default="", compare=False)
    chain_id: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.address, str):
            object.__setattr__(self, "address", Address(self.address))
        _check_decimals(self.decimals)

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_ADDRESS

    def parse_amount(self, amount: str | Decimal) -> int:
        """Human amount -> smallest units, rounded half-up at ``decimals``."""
        return TokenAmount.from_human_rounded(amount, self.decimals, self.symbol).raw

    def format_amount(self, raw: int, trim: bool = False) -> str:
        return TokenAmount(raw, self.decimals, self.symbol).format(trim=trim)


@dataclass(frozen=True)
class TokenAmount:
    """Integer amount in smallest units, tagged with its token's decimals."""

    raw: int
    decimals: int
    symbol: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.raw, int):
            raise TypeError("raw must be an int")
        _check_decimals(self.decimals)

    @classmethod
    def native(cls, raw: int = 0) -> "TokenAmount":
        """Transaction value in the chain's native currency."""
        return cls(raw=raw, decimals=NATIVE_DECIMALS)

    @classmethod
    def from_human(
        cls, amount: str | Decimal, decimals: int, symbol: str | None = None
    ) -> "TokenAmount":
        """Exact conversion; more fractional digits than ``decimals`` is an error."""
        raw, exact = _scale(_to_decimal(amount), decimals)
        if not exact:
            raise ValueError("amount has more precision than decimals allow")
        return cls(raw=raw, decimals=decimals, symbol=symbol)

    @classmethod
    def from_human_rounded(
        cls, amount: str | Decimal, decimals: int, symbol: str | None = None
    ) -> "TokenAmount":
        """Like ``from_human`` but rounds half-up to ``decimals`` places first."""
        raw, _ = _scale(_to_decimal(amount), decimals, round_half_up=True)
        return cls(raw=raw, decimals=decimals, symbol=symbol)

    @property
    def human(self) -> Decimal:
        digits = tuple(int(d) for d in str(abs(self.raw)))
        return Decimal((int(self.raw < 0), digits, -self.decimals))

    def format(self, trim: bool = False) -> str:
        """
        Fixed-point string at full token precision ('1.500000' for 6 decimals).

        With ``trim`` the trailing fractional zeros (and a bare '.') are dropped.
        """
        whole, frac = divmod(abs(self.raw), 10**self.decimals)
        text = f"{'-' if self.raw < 0 else ''}{whole}"
        if self.decimals:
            text += f".{frac:0{self.decimals}d}"
        if trim and "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def __str__(self) -> str:
        return f"{self.format(trim=True)} {self.symbol or ''}".strip()


@dataclass(frozen=True)
class TransactionRequest:
    """A transaction ready to be signed."""

    to: Address
    value: TokenAmount
    data: bytes
    nonce: Optional[int] = None
    gas_limit: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee: Optional[int] = None
    chain_id: int = 1
    sender: Optional[Address] = None

    def to_dict(self) -> dict:
        """Signing dict in the shape eth-account expects."""
        payload: dict[str, object] = {
            "to": self.to.checksum,
            "value": self.value.raw,
            "data": f"0x{self.data.hex()}",
            "chainId": self.chain_id,
        }
        optional = (
            ("from", self.sender.checksum if self.sender is not None else None),
            ("nonce", self.nonce),
            ("gas", self.gas_limit),
            ("maxFeePerGas", self.max_fee_per_gas),
            ("maxPriorityFeePerGas", self.max_priority_fee),
        )
        payload.update((key, value) for key, value in optional if value is not None)
        return payload

    def to_rpc_dict(self) -> dict:
        """Hex-quantity form accepted by eth_call / eth_estimateGas."""
        payload: dict[str, object] = {
            "to": self.to.checksum,
            "value": hex(self.value.raw),
            "data": f"0x{self.data.hex()}",
        }
        if self.sender is not None:
            payload["from"] = self.sender.checksum
        return payload


@dataclass
class TransactionReceipt:
    """Mined outcome of an approve or swap transaction."""

    tx_hash: str
    block_number: int
    status: bool
    gas_used: int
    effective_gas_price: int
    logs: list

    @property
    def tx_fee(self) -> TokenAmount:
        return TokenAmount.native(self.gas_used * self.effective_gas_price)

    @classmethod
    def from_rpc(cls, receipt: dict) -> "TransactionReceipt":
        """Parse an ``eth_getTransactionReceipt`` result."""
        tx_hash = receipt.get("transactionHash")
        return cls(
            tx_hash=tx_hash.hex() if hasattr(tx_hash, "hex") else str(tx_hash),
            block_number=_to_int(receipt.get("blockNumber")),
            status=_to_status(receipt.get("status")),
            gas_used=_to_int(receipt.get("gasUsed")),
            effective_gas_price=_to_int(receipt.get("effectiveGasPrice", 0)),
            logs=receipt.get("logs", []),
        )


def _check_decimals(decimals: object) -> None:
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative integer")


def _to_decimal(amount: object) -> Decimal:
    if isinstance(amount, float):
        raise TypeError("amount must be a string or Decimal, not float")
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, (str, int)) and not isinstance(amount, bool):
        try:
            return Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {amount!r}") from exc
    raise TypeError("amount must be a string or Decimal")


def _to_int(value: object) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    raise ValueError("Expected integer-like value")


def _to_status(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, str)):
        return _to_int(value) == 1
    raise ValueError("Invalid status in receipt")


def _scale(amount: Decimal, decimals: int, round_half_up: bool = False) -> tuple[int, bool]:
    """
    ``amount * 10**decimals`` as an int, computed on the digit tuple so no
    Decimal context precision applies. Returns (raw, exact).
    """
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {amount}")
    sign, digits, exponent = amount.as_tuple()
    coefficient = int("".join(map(str, digits)) or "0")
    shift = exponent + decimals
    if shift >= 0:
        magnitude, remainder, divisor = coefficient * 10**shift, 0, 1
    else:
        divisor = 10**-shift
        magnitude, remainder = divmod(coefficient, divisor)
        if round_half_up and 2 * remainder >= divisor:
            magnitude += 1
    return (-magnitude if sign else magnitude), remainder == 0
