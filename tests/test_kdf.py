"""
Tests for burrow_core.kdf: key derivation profiles and the executor wrapper.

Covers:
  - Profile cost constants
  - Determinism and salt sensitivity
  - scrypt / PBKDF2 against hashlib reference implementations
  - Profile lookup by name
  - Async derivation matching the blocking path
  - Executor shutdown surfacing as KeyDerivationUnavailable
"""

from __future__ import annotations

import hashlib
import unittest
from concurrent.futures import ThreadPoolExecutor

import pytest

from burrow_core.entropy import bytes_from_hex, decrypt, encrypt
from burrow_core.errors import ConfigurationError, KeyDerivationUnavailable
from burrow_core.kdf import (
    DerivedKey,
    KeyDeriver,
    PBKDF2Profile,
    ScryptProfile,
    get_profile,
)
from conftest import CIPHER_TEXT_HEX, ENTROPY, FAST_PROFILE, IV_HEX, KEY_HEX


class TestProfiles(unittest.TestCase):

    def test_scrypt_defaults(self):
        p = ScryptProfile()
        self.assertEqual((p.n, p.r, p.p, p.dk_len), (32768, 8, 1, 32))

    def test_pbkdf2_defaults(self):
        p = PBKDF2Profile()
        self.assertEqual(p.iterations, 50_000)
        self.assertEqual(p.dk_len, 64)

    def test_get_profile(self):
        self.assertIsInstance(get_profile("scrypt"), ScryptProfile)
        self.assertIsInstance(get_profile("PBKDF2"), PBKDF2Profile)

    def test_get_profile_unknown(self):
        with self.assertRaises(ConfigurationError):
            get_profile("argon2")

    def test_scrypt_matches_hashlib(self):
        key = ScryptProfile().derive("testpassword", IV_HEX)
        expected = hashlib.scrypt(
            b"testpassword", salt=IV_HEX.encode(), n=32768, r=8, p=1,
            maxmem=64 * 1024 * 1024, dklen=32,
        )
        self.assertEqual(key, expected)

    def test_pbkdf2_matches_hashlib_truncated(self):
        key = PBKDF2Profile().derive("testpassword", IV_HEX)
        expected = hashlib.pbkdf2_hmac(
            "sha512", b"testpassword", IV_HEX.encode(), 50_000, dklen=64,
        )[:32]
        self.assertEqual(key, expected)
        self.assertEqual(len(key), 32)

    def test_pbkdf2_reproduces_reference_key(self):
        key = PBKDF2Profile().derive("testpassword", IV_HEX)
        self.assertEqual(key.hex(), KEY_HEX)

    def test_pbkdf2_key_encrypts_reference_entropy(self):
        key = PBKDF2Profile().derive("testpassword", IV_HEX)
        iv = bytes_from_hex(IV_HEX)
        self.assertEqual(encrypt(ENTROPY, iv, key), CIPHER_TEXT_HEX)
        self.assertEqual(decrypt(iv, key, CIPHER_TEXT_HEX), ENTROPY)

    def test_salt_is_used_as_text(self):
        # "0x"-prefixed salts must not be hex-decoded
        key = FAST_PROFILE.derive("s", "0x4f72")
        expected = hashlib.scrypt(
            b"s", salt=b"0x4f72", n=1024, r=8, p=1, dklen=32,
        )
        self.assertEqual(key, expected)


class TestKeyDeriverSync(unittest.TestCase):

    def setUp(self):
        self.deriver = KeyDeriver(FAST_PROFILE)

    def tearDown(self):
        self.deriver.close()

    def test_deterministic(self):
        a = self.deriver.derive_key_sync("secret", IV_HEX)
        b = self.deriver.derive_key_sync("secret", IV_HEX)
        self.assertEqual(a, b)

    def test_formats(self):
        key = self.deriver.derive_key_sync("secret", IV_HEX)
        self.assertIsInstance(key, DerivedKey)
        self.assertEqual(len(key.key_bytes), 32)
        self.assertEqual(key.key_hex, key.key_bytes.hex())

    def test_salt_changes_key(self):
        a = self.deriver.derive_key_sync("secret", "aa" * 16)
        b = self.deriver.derive_key_sync("secret", "ab" * 16)
        self.assertNotEqual(a.key_bytes, b.key_bytes)

    def test_secret_changes_key(self):
        a = self.deriver.derive_key_sync("secret", IV_HEX)
        b = self.deriver.derive_key_sync("Secret", IV_HEX)
        self.assertNotEqual(a.key_bytes, b.key_bytes)

    def test_default_profile_is_pbkdf2(self):
        with KeyDeriver() as d:
            self.assertIsInstance(d.profile, PBKDF2Profile)


@pytest.mark.asyncio
class TestKeyDeriverAsync:

    async def test_async_matches_sync(self, fast_deriver):
        key = await fast_deriver.derive_key("secret", IV_HEX)
        assert key == fast_deriver.derive_key_sync("secret", IV_HEX)

    async def test_shutdown_executor_unavailable(self):
        deriver = KeyDeriver(FAST_PROFILE)
        deriver.close()
        with pytest.raises(KeyDerivationUnavailable):
            await deriver.derive_key("secret", IV_HEX)

    async def test_injected_executor_left_running(self):
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            deriver = KeyDeriver(FAST_PROFILE, executor=pool)
            deriver.close()
            key = await deriver.derive_key("secret", IV_HEX)
            assert len(key.key_bytes) == 32
        finally:
            pool.shutdown()
