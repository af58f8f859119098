"""Tokens, pairs and fakes shared by the swap engine tests."""

from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak

from core.base_types import NATIVE_ADDRESS, Address, Token, TransactionReceipt

CHAIN_ID = 167012

TKA = Token(Address("0x00000000000000000000000000000000000000a1"), "TKA", 6, "Token A", CHAIN_ID)
TKB = Token(Address("0x00000000000000000000000000000000000000b2"), "TKB", 6, "Token B", CHAIN_ID)
TKC = Token(Address("0x00000000000000000000000000000000000000c3"), "TKC", 6, "Token C", CHAIN_ID)
TKD = Token(Address("0x00000000000000000000000000000000000000d4"), "TKD", 6, "Token D", CHAIN_ID)
WKAS = Token(
    Address("0x654A3287c317D4Fc6e8482FeF523Dc4572b563AA"), "WKAS", 18, "Wrapped KAS", CHAIN_ID
)
KAS = Token(NATIVE_ADDRESS, "KAS", 18, "Kaspa", CHAIN_ID)

USER = "0x000000000000000000000000000000000000dEaD"
ROUTER = Address("0x5A410f79f58a11344E3523d99820Cf231bc888bd")
PROXY = Address("0xbE448f863d2bB7bCcD9185A854DF2D8d63498dB0")
PARTNER_ID = bytes.fromhex("11" * 32)


def token_entry(token: Token) -> dict:
    return {
        "id": token.address.lower,
        "symbol": token.symbol,
        "name": token.name,
        "decimals": str(token.decimals),
    }


def pair_entry(pair_id: str, token_a: Token, token_b: Token, reserve_a, reserve_b) -> dict:
    """Snapshot row; int reserves are raw units, strings are human decimals."""
    return {
        "id": pair_id,
        "token0": token_entry(token_a),
        "token1": token_entry(token_b),
        "reserve0": reserve_a,
        "reserve1": reserve_b,
    }


def sel(signature: str) -> bytes:
    return keccak(text=signature)[:4]


class FakeChainClient:
    """Answers eth_call by selector: allowance, partnerFee, feeEnabled."""

    def __init__(self, allowance: int = 0, fee_bps: int = 0, fee_enabled: bool = False):
        self.allowance = allowance
        self.fee_bps = fee_bps
        self.fee_enabled = fee_enabled
        self.calls = []

    def call(self, tx, block="latest"):
        self.calls.append(tx)
        selector = tx.data[:4]
        if selector == sel("allowance(address,address)"):
            return encode(["uint256"], [self.allowance])
        if selector == sel("partnerFee(bytes32)"):
            return encode(["address", "uint16"], [USER, self.fee_bps])
        if selector == sel("feeEnabled()"):
            return encode(["bool"], [self.fee_enabled])
        raise AssertionError(f"unexpected call {tx.data.hex()}")


class FakeSigner:
    def __init__(self, status: bool = True, receipt: bool = True, address: str = USER):
        self.address = address
        self.status = status
        self.receipt = receipt
        self.sent = []

    def get_address(self) -> str:
        return self.address

    def send_transaction(self, tx) -> str:
        self.sent.append(tx)
        return f"0x{len(self.sent):064x}"

    def wait_for_receipt(self, tx_hash: str):
        if not self.receipt:
            return None
        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=10,
            status=self.status,
            gas_used=100_000,
            effective_gas_price=1,
            logs=[],
        )


class FakeWallet:
    def __init__(self, signer: FakeSigner | None = None):
        self.signer = signer or FakeSigner()
        self.connected = False

    def connect(self) -> str:
        self.connected = True
        return self.signer.address

    def disconnect(self) -> None:
        self.connected = False

    def get_signer(self):
        return self.signer if self.connected else None
