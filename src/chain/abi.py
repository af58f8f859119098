"""Function-call encoding helpers over eth-abi."""

from __future__ import annotations

from typing import Any

from eth_abi import decode, encode
from eth_utils import keccak


def selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_call(signature: str, arg_types: list[str], args: list[Any]) -> bytes:
    return selector(signature) + encode(arg_types, args)


def decode_result(result_types: list[str], raw: bytes) -> tuple:
    return tuple(decode(result_types, raw))
