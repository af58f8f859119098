from decimal import Decimal

import pytest

from core.base_types import (
    NATIVE_ADDRESS,
    Address,
    Token,
    TokenAmount,
    TransactionReceipt,
    TransactionRequest,
)


def test_address_invalid_raises():
    with pytest.raises(ValueError, match="Invalid Ethereum address"):
        Address("invalid")


def test_address_case_insensitive_equality():
    lower = Address("0x000000000000000000000000000000000000dead")
    upper = Address("0x000000000000000000000000000000000000DEAD")
    assert lower == upper
    assert hash(lower) == hash(upper)
    assert lower == "0x000000000000000000000000000000000000DeAd"


def test_token_identity_ignores_metadata():
    a = Token(Address("0x00000000000000000000000000000000000000a1"), "A", 6, chain_id=1)
    renamed = Token("0x00000000000000000000000000000000000000a1", "AAA", 18, "other", 1)
    other_chain = Token(a.address, "A", 6, chain_id=2)
    assert a == renamed
    assert a != other_chain
    assert isinstance(renamed.address, Address)


def test_native_token():
    assert Token(NATIVE_ADDRESS, "KAS", 18).is_native
    assert not Token(Address("0x00000000000000000000000000000000000000a1"), "A", 6).is_native


def test_token_amount_from_human_raw():
    amount = TokenAmount.from_human("1.5", 18)
    assert amount.raw == 1_500_000_000_000_000_000


def test_token_amount_from_human_rejects_excess_precision():
    with pytest.raises(ValueError, match="precision"):
        TokenAmount.from_human("0.0000001", 6)


def test_token_amount_from_human_rounded_half_up():
    assert TokenAmount.from_human_rounded("0.0000005", 6).raw == 1
    assert TokenAmount.from_human_rounded("0.0000004", 6).raw == 0
    assert TokenAmount.from_human_rounded(Decimal("1.23456789"), 6).raw == 1_234_568


def test_token_amount_format():
    assert TokenAmount(raw=1_500_000, decimals=6).format() == "1.500000"
    assert TokenAmount(raw=1_500_000, decimals=6).format(trim=True) == "1.5"
    assert TokenAmount(raw=2_000_000, decimals=6).format(trim=True) == "2"
    assert TokenAmount(raw=53, decimals=6).format() == "0.000053"
    assert TokenAmount(raw=7, decimals=0).format(trim=True) == "7"


def test_token_parses_and_formats_its_own_amounts():
    usdc = Token(Address("0x00000000000000000000000000000000000000a1"), "USDC", 6)
    assert usdc.parse_amount("12.3456785") == 12_345_679
    assert usdc.format_amount(12_345_679) == "12.345679"
    assert usdc.format_amount(2_000_000, trim=True) == "2"


def test_native_amount_has_18_decimals():
    value = TokenAmount.native(5)
    assert (value.raw, value.decimals) == (5, 18)
    assert str(TokenAmount(1_500_000, 6, "USDC")) == "1.5 USDC"


def test_token_amount_rejects_float_input():
    with pytest.raises(TypeError, match="not float"):
        TokenAmount.from_human(1.5, 18)


def test_transaction_request_dicts_include_sender():
    tx = TransactionRequest(
        to=Address("0x000000000000000000000000000000000000dEaD"),
        value=TokenAmount(raw=16, decimals=18),
        data=b"\x01\x02",
        chain_id=5,
        sender=Address("0x00000000000000000000000000000000000000a1"),
    )
    assert tx.to_dict()["from"] == tx.sender.checksum
    assert tx.to_dict()["value"] == 16
    rpc = tx.to_rpc_dict()
    assert rpc["value"] == "0x10"
    assert rpc["data"] == "0x0102"
    assert "chainId" not in rpc


def test_receipt_from_rpc_dict():
    receipt = TransactionReceipt.from_rpc(
        {
            "transactionHash": "0xabc",
            "blockNumber": "0x10",
            "status": "0x1",
            "gasUsed": "0x5208",
            "effectiveGasPrice": "0x3b9aca00",
            "logs": [],
        }
    )
    assert receipt.status is True
    assert receipt.block_number == 16
    assert receipt.tx_fee.raw == 21_000 * 1_000_000_000


@pytest.mark.parametrize("status", [False, 0, "0x0", "0"])
def test_receipt_failure_status_forms(status):
    receipt = TransactionReceipt.from_rpc(
        {"transactionHash": "0xdef", "blockNumber": 1, "status": status, "gasUsed": 0}
    )
    assert receipt.status is False
    assert receipt.effective_gas_price == 0


def test_receipt_rejects_missing_status():
    with pytest.raises(ValueError, match="status"):
        TransactionReceipt.from_rpc({"transactionHash": "0xdef", "blockNumber": 1, "gasUsed": 0})


def test_large_18_decimal_amounts_are_exact():
    wkas = Token(Address("0x00000000000000000000000000000000000000a1"), "WKAS", 18)
    assert wkas.parse_amount("10000000000") == 10**28
    assert wkas.parse_amount("20000000000.5") == 20_000_000_000 * 10**18 + 5 * 10**17
    assert TokenAmount.from_human("123456789012.000000000000000001", 18).raw == 123456789012 * 10**18 + 1

    raw = 123456789012 * 10**18 + 1
    assert wkas.format_amount(raw) == "123456789012.000000000000000001"
    assert TokenAmount(raw, 18).human == Decimal("123456789012.000000000000000001")


def test_rounding_beyond_default_decimal_precision():
    assert TokenAmount.from_human_rounded("99999999999999.9999999999999999995", 18).raw == 10**32
    assert TokenAmount.from_human_rounded("-1.5", 0).raw == -2


@pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity"])
def test_non_numeric_amounts_rejected(bad):
    with pytest.raises(ValueError):
        TokenAmount.from_human_rounded(bad, 6)
