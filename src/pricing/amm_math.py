"""
Constant-product math with a proportional input fee.

All math uses integers only. The fee is taken from the input first
(truncating), then ``x * y = k`` is applied to what remains:

    effective_in = amount_in * (10000 - fee_bps) // 10000
    amount_out   = effective_in * reserve_out // (reserve_in + effective_in)

The default pool fee is 1% (100 bps) rather than the classic 0.30%.
"""

from __future__ import annotations

from core.errors import InsufficientLiquidity

BPS_DENOMINATOR = 10_000
DEFAULT_POOL_FEE_BPS = 100


def _check_fee(fee_bps: int) -> None:
    if not isinstance(fee_bps, int):
        raise TypeError("fee_bps must be int")
    if fee_bps < 0 or fee_bps >= BPS_DENOMINATOR:
        raise ValueError("fee_bps must be in [0, 10000)")


def _check_reserves(reserve_in: int, reserve_out: int) -> None:
    if not isinstance(reserve_in, int) or not isinstance(reserve_out, int):
        raise TypeError("reserves must be int")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("reserves must be positive")


def output_for(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int = DEFAULT_POOL_FEE_BPS,
) -> int:
    """Output received for ``amount_in``. Always strictly below ``reserve_out``."""
    if not isinstance(amount_in, int):
        raise TypeError("amount_in must be int")
    if amount_in < 0:
        raise ValueError("amount_in must be non-negative")
    _check_fee(fee_bps)
    _check_reserves(reserve_in, reserve_out)

    effective_in = amount_in * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR
    return effective_in * reserve_out // (reserve_in + effective_in)


def input_for(
    amount_out: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int = DEFAULT_POOL_FEE_BPS,
) -> int:
    """
    Input needed to receive ``amount_out``.

    Rounded up, plus one unit to cover the truncation of the effective input
    in ``output_for``. Raises ``InsufficientLiquidity`` if the pool cannot
    pay ``amount_out``.
    """
    if not isinstance(amount_out, int):
        raise TypeError("amount_out must be int")
    if amount_out <= 0:
        raise ValueError("amount_out must be positive")
    _check_fee(fee_bps)
    _check_reserves(reserve_in, reserve_out)
    if amount_out >= reserve_out:
        raise InsufficientLiquidity("amount_out must be less than reserve_out")

    numerator = reserve_in * amount_out * BPS_DENOMINATOR
    denominator = (reserve_out - amount_out) * (BPS_DENOMINATOR - fee_bps)
    return -(-numerator // denominator) + 1


def apply_bps_discount(amount: int, bps: int) -> int:
    """``amount - amount * bps / 10000``, truncating the deducted part."""
    return amount - amount * bps // BPS_DENOMINATOR


def apply_bps_premium(amount: int, bps: int) -> int:
    """``amount + amount * bps / 10000``, truncating the added part."""
    return amount + amount * bps // BPS_DENOMINATOR
