"""
Password-based key derivation for Burrow.

Turns a secret string and a salt string into a 32-byte symmetric key.
Two interchangeable profiles are supported:

  - **pbkdf2**  – HMAC-SHA512, 50 000 iterations, 64-byte output
                  truncated to the AES-256 key length (default)
  - **scrypt**  – memory-hard, N=32768 r=8 p=1

PBKDF2 is the headless profile; records created under one profile cannot be
opened under the other, so every client sharing a store must agree.

The salt is the UTF-8 encoding of the salt *string* exactly as given; it
is never hex-decoded.  Changing any of the cost parameters makes every
previously created wallet unrecoverable.

Derivation is the only expensive step in the pipeline, so ``KeyDeriver``
pushes it onto an executor and hands back an awaitable.

Usage:
    deriver = KeyDeriver(get_profile("pbkdf2"))
    key = await deriver.derive_key("hunter2", iv_hex)
    key.key_hex, key.key_bytes
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from Crypto.Hash import SHA512
from Crypto.Protocol.KDF import PBKDF2, scrypt

from burrow_core.errors import ConfigurationError, KeyDerivationUnavailable

logger = logging.getLogger("burrow.kdf")

KEY_LENGTH = 32


@dataclass(frozen=True)
class DerivedKey:
    """A derived symmetric key in both the formats the pipeline needs."""
    key_hex: str
    key_bytes: bytes


# ===================================================================
#  Profiles
# ===================================================================

@dataclass(frozen=True)
class ScryptProfile:
    """Memory-hard scrypt stretching."""
    name: str = "scrypt"
    n: int = 32768
    r: int = 8
    p: int = 1
    dk_len: int = KEY_LENGTH

    def derive(self, secret: str, salt: str) -> bytes:
        return scrypt(
            secret.encode("utf-8"), salt.encode("utf-8"),
            key_len=self.dk_len, N=self.n, r=self.r, p=self.p,
        )


@dataclass(frozen=True)
class PBKDF2Profile:
    """Iterative HMAC-SHA512 stretching."""
    name: str = "pbkdf2"
    iterations: int = 50_000
    dk_len: int = 64

    def derive(self, secret: str, salt: str) -> bytes:
        raw = PBKDF2(
            secret.encode("utf-8"), salt.encode("utf-8"),
            dkLen=self.dk_len, count=self.iterations,
            hmac_hash_module=SHA512,
        )
        return raw[:KEY_LENGTH]


_PROFILES = {
    "scrypt": ScryptProfile,
    "pbkdf2": PBKDF2Profile,
}


def get_profile(name: str) -> ScryptProfile | PBKDF2Profile:
    """Return the default-cost profile registered under *name*."""
    try:
        return _PROFILES[name.lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown KDF profile {name!r} (expected one of {sorted(_PROFILES)})"
        ) from None


# ===================================================================
#  Deriver
# ===================================================================

class KeyDeriver:
    """
    Runs a KDF profile on a background executor.

    If no executor is injected the deriver owns a small thread pool and
    shuts it down in ``close()``.  An injected executor is left alone.
    """

    def __init__(
        self,
        profile: ScryptProfile | PBKDF2Profile | None = None,
        executor: Executor | None = None,
        max_workers: int = 1,
    ):
        self.profile = profile or PBKDF2Profile()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="burrow-kdf",
        )

    def derive_key_sync(self, secret: str, salt_hex: str) -> DerivedKey:
        """Blocking derivation on the calling thread."""
        key = self.profile.derive(secret, salt_hex)
        return DerivedKey(key_hex=key.hex(), key_bytes=key)

    async def derive_key(self, secret: str, salt_hex: str) -> DerivedKey:
        """Derive on the executor and await the result."""
        loop = asyncio.get_running_loop()
        try:
            key = await loop.run_in_executor(
                self._executor, self.profile.derive, secret, salt_hex,
            )
        except RuntimeError as exc:
            # shut-down pools and broken process pools both land here
            logger.warning(f"KDF executor unavailable: {exc}")
            raise KeyDerivationUnavailable(str(exc)) from exc
        return DerivedKey(key_hex=key.hex(), key_bytes=key)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def __repr__(self) -> str:
        return f"KeyDeriver({self.profile.name})"
