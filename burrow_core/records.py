"""
Wire shapes exchanged with the persistence callbacks.

Field names in ``to_dict`` output are the stable contract with whatever
store sits behind ``fetch`` / ``store_auth`` / ``store_user``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class AuthRecord:
    """Encrypted entropy plus the lookup key the server indexes it by."""
    iv: str
    cipher_text: str
    lookup_key: str
    old_lookup_key: str | None = None

    def to_dict(self) -> dict[str, str]:
        d = {
            "iv": self.iv,
            "cipherText": self.cipher_text,
            "lookupKey": self.lookup_key,
        }
        if self.old_lookup_key is not None:
            d["oldLookupKey"] = self.old_lookup_key
        return d


@dataclass
class UserRecord:
    username: str
    wallet_address: str

    def to_dict(self) -> dict[str, str]:
        return {"username": self.username, "walletAddress": self.wallet_address}


def parse_fetched(data: Any) -> tuple[str, str] | None:
    """
    Extract ``(iv, cipherText)`` from a fetch-callback result.

    Returns None when the record is absent or incomplete.
    """
    if not data:
        return None
    iv = data.get("iv")
    cipher_text = data.get("cipherText")
    if not iv or not cipher_text:
        return None
    return iv, cipher_text
