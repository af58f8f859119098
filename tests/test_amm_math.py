import pytest

from core.errors import InsufficientLiquidity
from pricing.amm_math import (
    DEFAULT_POOL_FEE_BPS,
    apply_bps_discount,
    apply_bps_premium,
    input_for,
    output_for,
)


def test_output_for_matches_formula():
    """1M A / 2M B pool, 1% fee, sell 1000 A."""
    effective_in = 1000 * 9900 // 10000
    expected = effective_in * 2_000_000 // (1_000_000 + effective_in)

    out = output_for(1000, 1_000_000, 2_000_000, 100)

    assert effective_in == 990
    assert out == expected == 1978


def test_default_fee_is_one_percent():
    assert DEFAULT_POOL_FEE_BPS == 100
    assert output_for(1000, 1_000_000, 2_000_000) == output_for(
        1000, 1_000_000, 2_000_000, 100
    )


def test_fee_truncates_before_constant_product():
    # 101 * 9900 / 10000 = 99.99 -> 99 effective
    assert output_for(101, 10**12, 10**12, 100) == output_for(99, 10**12, 10**12, 0)


def test_output_always_below_reserve():
    assert output_for(10**30, 1000, 1000, 0) < 1000


def test_integer_math_no_floats():
    out = output_for(10**25, 10**30, 10**30, 100)
    assert isinstance(out, int)


def test_input_for_rounds_up_plus_one():
    numerator = 1_000_000 * 1978 * 10000
    denominator = (2_000_000 - 1978) * 9900
    ceil = -(-numerator // denominator)

    assert input_for(1978, 1_000_000, 2_000_000, 100) == ceil + 1 == 1001


def test_input_for_rejects_draining_output():
    with pytest.raises(InsufficientLiquidity):
        input_for(2_000_000, 1_000_000, 2_000_000, 100)
    with pytest.raises(InsufficientLiquidity):
        input_for(3_000_000, 1_000_000, 2_000_000, 100)


def test_zero_reserve_is_insufficient_liquidity():
    with pytest.raises(InsufficientLiquidity):
        output_for(10, 0, 1000, 100)


def test_fee_out_of_range_rejected():
    with pytest.raises(ValueError, match="fee_bps"):
        output_for(10, 1000, 1000, 10000)


def test_float_amount_rejected():
    with pytest.raises(TypeError):
        output_for(1.5, 1000, 1000, 100)  # type: ignore[arg-type]


@pytest.mark.parametrize("fee_bps", [0, 30, 100, 2500, 9999])
@pytest.mark.parametrize(
    "reserve_in,reserve_out",
    [(1_000_000, 2_000_000), (10**18, 3 * 10**18), (5_000, 7_000_000)],
)
def test_inverse_never_overshoots_by_more_than_one(fee_bps, reserve_in, reserve_out):
    for amount_in in (10, 999, 12_345, reserve_in // 3):
        out = output_for(amount_in, reserve_in, reserve_out, fee_bps)
        if out == 0:
            continue
        assert input_for(out, reserve_in, reserve_out, fee_bps) <= amount_in + 1


def test_exact_out_requests_at_least_exact_in_amount():
    amount_in = 1000
    out = output_for(amount_in, 1_000_000, 2_000_000, 100)
    assert input_for(out, 1_000_000, 2_000_000, 100) >= amount_in


def test_slippage_bounds():
    assert apply_bps_discount(200, 50) == 200 - 200 * 50 // 10000 == 199
    assert apply_bps_premium(20_000, 50) == 20_100
