import pytest
from eth_abi import decode

from core.base_types import Token
from core.errors import WalletNotConnected
from helpers import KAS, PARTNER_ID, PROXY, ROUTER, TKA, TKB, USER, WKAS, FakeSigner, sel
from pricing.pair_graph import LiquidityPair
from pricing.quote import ComputedAmounts, Trade, TradeType
from pricing.route import Route
from swap.encoder import (
    PARTNER_MARKER,
    PROXY_MARKER,
    CallShape,
    DirectTarget,
    ExecutionEncoder,
    ProxiedTarget,
    call_shape,
    encode_swap_call,
    wrap_proxy_calldata,
)

NOW = 1_700_000_000

_TAIL = ["address[]", "address", "uint256"]


def _graph_side(token: Token) -> Token:
    return WKAS if token.is_native else token


def _trade(token_in: Token, token_out: Token, trade_type: TradeType) -> tuple[Trade, ComputedAmounts]:
    a, b = _graph_side(token_in), _graph_side(token_out)
    pool = LiquidityPair("p", a, b, 10**9, 10**9)
    route = Route([pool], [a, b])
    if trade_type is TradeType.EXACT_INPUT:
        computed = ComputedAmounts(
            amount_in="in",
            amount_out="out",
            amount_in_raw=1_000,
            amount_out_raw=980,
            min_amount_out="min",
            min_amount_out_raw=975,
        )
        trade = Trade(route, trade_type, token_in, token_out, 1_000, 980)
    else:
        computed = ComputedAmounts(
            amount_in="in",
            amount_out="out",
            amount_in_raw=1_030,
            amount_out_raw=1_000,
            max_amount_in="max",
            max_amount_in_raw=1_035,
        )
        trade = Trade(route, trade_type, token_in, token_out, 1_030, 1_000)
    return trade, computed


async def _fee_on() -> bool:
    return True


async def _fee_off() -> bool:
    return False


def _direct() -> ExecutionEncoder:
    return ExecutionEncoder(DirectTarget(ROUTER), 167012, clock=lambda: NOW)


@pytest.mark.parametrize(
    "token_in,token_out,trade_type,signature",
    [
        (KAS, TKB, TradeType.EXACT_INPUT, "swapExactETHForTokens(uint256,address[],address,uint256)"),
        (TKA, KAS, TradeType.EXACT_INPUT, "swapExactTokensForETH(uint256,uint256,address[],address,uint256)"),
        (TKA, TKB, TradeType.EXACT_INPUT, "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)"),
        (KAS, TKB, TradeType.EXACT_OUTPUT, "swapETHForExactTokens(uint256,address[],address,uint256)"),
        (TKA, KAS, TradeType.EXACT_OUTPUT, "swapTokensForExactETH(uint256,uint256,address[],address,uint256)"),
        (TKA, TKB, TradeType.EXACT_OUTPUT, "swapTokensForExactTokens(uint256,uint256,address[],address,uint256)"),
    ],
)
@pytest.mark.asyncio
async def test_router_function_per_trade_shape(token_in, token_out, trade_type, signature):
    trade, computed = _trade(token_in, token_out, trade_type)
    tx = await _direct().build(trade, computed, USER, 20)
    assert tx.data[:4] == sel(signature)


@pytest.mark.asyncio
async def test_exact_in_tokens_passes_amount_and_min_out():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_INPUT)
    tx = await _direct().build(trade, computed, USER, 20)

    amount_in, min_out, path, to, deadline = decode(
        ["uint256", "uint256"] + _TAIL, tx.data[4:]
    )
    assert (amount_in, min_out) == (1_000, 975)
    assert [p.lower() for p in path] == [TKA.address.lower, TKB.address.lower]
    assert to.lower() == USER.lower()
    assert deadline == NOW + 20 * 60
    assert tx.value.raw == 0
    assert tx.to == ROUTER


@pytest.mark.asyncio
async def test_exact_out_tokens_passes_amount_out_and_max_in():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_OUTPUT)
    tx = await _direct().build(trade, computed, USER, 5)

    amount_out, max_in, _, _, deadline = decode(["uint256", "uint256"] + _TAIL, tx.data[4:])
    assert (amount_out, max_in) == (1_000, 1_035)
    assert deadline == NOW + 5 * 60


@pytest.mark.asyncio
async def test_native_in_exact_in_sends_value():
    trade, computed = _trade(KAS, TKB, TradeType.EXACT_INPUT)
    tx = await _direct().build(trade, computed, USER, 20)

    min_out, path, _, _ = decode(["uint256"] + _TAIL, tx.data[4:])
    assert min_out == 975
    assert path[0].lower() == WKAS.address.lower
    assert tx.value.raw == 1_000


@pytest.mark.asyncio
async def test_native_in_exact_out_sends_max_in_as_value():
    trade, computed = _trade(KAS, TKB, TradeType.EXACT_OUTPUT)
    tx = await _direct().build(trade, computed, USER, 20)

    (amount_out, _, _, _) = decode(["uint256"] + _TAIL, tx.data[4:])
    assert amount_out == 1_000
    assert tx.value.raw == 1_035


@pytest.mark.asyncio
async def test_native_out_sends_no_value():
    trade, computed = _trade(TKA, KAS, TradeType.EXACT_INPUT)
    tx = await _direct().build(trade, computed, USER, 20)
    assert tx.value.raw == 0
    assert call_shape(trade) is CallShape.NATIVE_OUT


def test_proxy_framing_without_partner():
    call = b"\xaa" * 8
    assert wrap_proxy_calldata(call) == call + b"\x00" + PROXY_MARKER
    assert len(PROXY_MARKER) == 16


def test_proxy_framing_with_aux_blobs_and_partner():
    call = b"\xaa" * 8
    framed = wrap_proxy_calldata(call, [b"\x01\x02", b"\x03"], PARTNER_ID)
    assert framed == (
        call + b"\x01\x02" + b"\x03" + b"\x02" + PROXY_MARKER + PARTNER_ID + PARTNER_MARKER
    )


def test_proxy_framing_rejects_bad_partner_id():
    with pytest.raises(ValueError):
        wrap_proxy_calldata(b"", partner_id=b"\x01" * 31)


@pytest.mark.asyncio
async def test_proxied_call_is_framed_and_sent_to_proxy():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_INPUT)
    encoder = ExecutionEncoder(
        ProxiedTarget(PROXY, PARTNER_ID), 167012, _fee_off, clock=lambda: NOW
    )
    tx = await encoder.build(trade, computed, USER, 20)

    plain = encode_swap_call(
        TradeType.EXACT_INPUT,
        CallShape.TOKEN_ONLY,
        1_000,
        975,
        trade.route.addresses,
        USER,
        NOW + 20 * 60,
    )
    assert tx.to == PROXY
    assert tx.data == wrap_proxy_calldata(plain, partner_id=PARTNER_ID)


@pytest.mark.asyncio
async def test_fee_switch_makes_proxy_the_recipient():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_INPUT)
    encoder = ExecutionEncoder(ProxiedTarget(PROXY), 167012, _fee_on, clock=lambda: NOW)
    tx = await encoder.build(trade, computed, USER, 20)

    call = tx.data[: -(1 + len(PROXY_MARKER))]
    _, _, _, to, _ = decode(["uint256", "uint256"] + _TAIL, call[4:])
    assert to.lower() == PROXY.lower
    assert await encoder.recipient(USER) == PROXY.checksum


@pytest.mark.asyncio
async def test_direct_target_ignores_fee_switch():
    encoder = ExecutionEncoder(DirectTarget(ROUTER), 167012, _fee_on)
    assert (await encoder.recipient(USER)).lower() == USER.lower()


@pytest.mark.asyncio
async def test_execute_submits_through_signer():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_INPUT)
    signer = FakeSigner()

    pending = await _direct().execute(trade, computed, signer, 20)

    assert pending.tx_hash == f"0x{1:064x}"
    (tx,) = signer.sent
    assert tx.sender == USER


@pytest.mark.asyncio
async def test_execute_without_signer_rejected():
    trade, computed = _trade(TKA, TKB, TradeType.EXACT_INPUT)
    with pytest.raises(WalletNotConnected):
        await _direct().execute(trade, computed, None, 20)
