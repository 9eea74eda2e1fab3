"""
Credential vault: ties key derivation to entropy encryption.

Creates and recovers wallet records, derives the password-bound lookup
key, and owns the local-cache copy of the entropy.  Both the
``KeyDeriver`` and the cache are injected, so the same vault runs in
tests (cheap KDF, dict cache) and in production (scrypt, SQLite).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from burrow_core import entropy as codec
from burrow_core.cache import LocalCache, MemoryCache, maybe_await
from burrow_core.entropy import Wallet
from burrow_core.errors import IntegrityError, MissingParameter
from burrow_core.kdf import KeyDeriver

logger = logging.getLogger("burrow.vault")

ENTROPY_CACHE_KEY = "hedgehog-entropy-key"
# Fixed so the lookup key is reproducible from username + password alone.
LOOKUP_KEY_IV = "0x4f7242b39969c3ac4c6712524d633ce9"
LOOKUP_KEY_SEPARATOR = ":::"


@dataclass
class WalletRecord:
    """Everything produced when a wallet is (re-)encrypted."""
    iv_hex: str
    cipher_text_hex: str
    wallet: Wallet
    entropy: str


@dataclass
class RecoveredWallet:
    wallet: Wallet
    entropy: str


class CredentialVault:
    """Orchestrates IVs, keys, entropy encryption and the entropy cache."""

    def __init__(self, key_deriver: KeyDeriver | None = None,
                 cache: LocalCache | None = None,
                 path: str = codec.PATH):
        self.key_deriver = key_deriver or KeyDeriver()
        self.cache = cache if cache is not None else MemoryCache()
        self.path = path

    # ---- wallet records ----

    async def create_wallet_record(
        self, password: str, entropy_override: str | None = None,
    ) -> WalletRecord:
        """
        Encrypt fresh (or overridden) entropy under *password*.

        Side effect: the plaintext entropy is written to the local cache.
        """
        if not password:
            raise MissingParameter("Missing property: password")

        iv_bytes, iv_hex = codec.create_iv()
        key = await self.key_deriver.derive_key(password, iv_hex)
        if entropy_override:
            entropy = entropy_override
        else:
            _, entropy = codec.generate_mnemonic_and_entropy()

        wallet = codec.derive_wallet(entropy, self.path)
        cipher_text_hex = codec.encrypt(entropy, iv_bytes, key.key_bytes)

        await self.set_entropy(entropy)
        logger.debug("Wallet record created", extra={"address": wallet.address})
        return WalletRecord(iv_hex, cipher_text_hex, wallet, entropy)

    async def recover_wallet(
        self, password: str, iv_hex: str, cipher_text_hex: str,
    ) -> RecoveredWallet:
        """
        Decrypt a stored record.

        Any record that fails to decrypt, a malformed IV included, raises
        IntegrityError.
        """
        try:
            iv_bytes = codec.bytes_from_hex(iv_hex)
        except (TypeError, ValueError) as exc:
            raise IntegrityError("Could not verify integrity of decrypted string") from exc
        key = await self.key_deriver.derive_key(password, iv_hex)
        entropy = codec.decrypt(iv_bytes, key.key_bytes, cipher_text_hex)
        wallet = codec.derive_wallet(entropy, self.path)
        return RecoveredWallet(wallet, entropy)

    async def derive_lookup_key(self, username: str, password: str) -> str:
        if not username:
            raise MissingParameter("Missing property: username")
        if not password:
            raise MissingParameter("Missing property: password")
        # lowercase so the same account is found regardless of input casing
        secret = username.lower() + LOOKUP_KEY_SEPARATOR + password
        key = await self.key_deriver.derive_key(secret, LOOKUP_KEY_IV)
        return key.key_hex

    async def derive_lookup_keys(self, username: str, *passwords: str) -> list[str]:
        """Derive several lookup keys for one user concurrently."""
        return list(await asyncio.gather(
            *(self.derive_lookup_key(username, pw) for pw in passwords)
        ))

    # ---- local cache ----

    async def get_entropy(self) -> str | None:
        entropy = await maybe_await(self.cache.get(ENTROPY_CACHE_KEY))
        # "undefined" has been written by careless serialisers before
        if entropy and entropy != "undefined":
            return entropy
        return None

    async def set_entropy(self, entropy: str) -> None:
        await maybe_await(self.cache.set(ENTROPY_CACHE_KEY, entropy))

    async def delete_entropy(self) -> None:
        await maybe_await(self.cache.delete(ENTROPY_CACHE_KEY))

    async def get_wallet_from_cache(self) -> Wallet | None:
        """Wallet for the cached entropy; unreadable entropy is dropped."""
        entropy = await self.get_entropy()
        if entropy is None:
            return None
        try:
            return codec.derive_wallet(entropy, self.path)
        except ValueError as exc:
            logger.warning(f"Discarding unreadable cached entropy: {exc}")
            await self.delete_entropy()
            return None

    def close(self) -> None:
        """Close the key deriver and, when it has one, the cache connection."""
        self.key_deriver.close()
        close_cache = getattr(self.cache, "close", None)
        if callable(close_cache):
            close_cache()
