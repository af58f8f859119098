"""Private-key holder used by the local signer."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from eth_account import Account
from eth_account.datastructures import SignedTransaction
from eth_utils.address import to_checksum_address


def _mask_private_key(private_key: Any) -> str:
    raw = private_key.hex() if isinstance(private_key, (bytes, bytearray)) else str(private_key)
    raw = raw.removeprefix("0x")
    if len(raw) < 10:
        return "<redacted>"
    return f"0x{raw[:6]}...{raw[-4:]}"


class WalletManager:
    """
    Holds the account that approves and swaps, and signs for it.

    The key is never logged and never part of an error message or repr;
    invalid keys are reported in masked form only.
    """

    def __init__(self, private_key: str | bytes) -> None:
        try:
            self._account = Account.from_key(private_key)
        except Exception as exc:
            raise ValueError(
                f"Invalid private key: {_mask_private_key(private_key)}"
            ) from exc

    @classmethod
    def from_env(cls, env_var: str = "PRIVATE_KEY") -> "WalletManager":
        value = os.environ.get(env_var)
        if not value:
            raise ValueError(f"Environment variable {env_var} is not set")
        return cls(value)

    @classmethod
    def from_keyfile(cls, path: str, password: str) -> "WalletManager":
        """Decrypt a V3 keystore JSON file."""
        keystore = json.loads(Path(path).read_text(encoding="utf-8"))
        try:
            key = Account.decrypt(keystore, password)
        except Exception as exc:
            raise ValueError("Failed to decrypt keyfile") from exc
        return cls(key)

    @classmethod
    def load(
        cls,
        env_var: str = "PRIVATE_KEY",
        keyfile: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "WalletManager":
        """Keyfile when one is configured, otherwise the raw key in ``env_var``."""
        if keyfile:
            if password is None:
                raise ValueError("keyfile password is required")
            return cls.from_keyfile(keyfile, password)
        return cls.from_env(env_var)

    @property
    def address(self) -> str:
        return to_checksum_address(self._account.address)

    def sign_transaction(self, tx: dict) -> SignedTransaction:
        if not isinstance(tx, dict):
            raise TypeError("tx must be a dict")
        if not tx:
            raise ValueError("tx must not be empty")
        return self._account.sign_transaction(tx)

    def __repr__(self) -> str:
        return f"WalletManager(address={self.address})"

    __str__ = __repr__
