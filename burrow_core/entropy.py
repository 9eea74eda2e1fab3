"""
Entropy, HD wallet and entropy-encryption primitives for Burrow.

Everything a wallet is built from starts as 16 bytes of entropy:

  - BIP-39 mnemonic encoding (reversible, via the ``mnemonic`` package)
  - BIP-32 hierarchical derivation on secp256k1 along ``m/44'/60'/0'/0/0``
  - Ethereum-style address (Keccak-256 of the raw public key, last 20 bytes)
  - AES-256-CBC encryption of the entropy hex, prefixed with an integrity
    marker that is checked on decryption

The path and the prefix string are part of the on-disk format; changing
either one orphans every existing wallet.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import struct

from Crypto.Cipher import AES
from Crypto.Hash import keccak
from Crypto.Util.Padding import pad, unpad
from ecdsa import SECP256k1, SigningKey
from mnemonic import Mnemonic

from burrow_core.errors import IntegrityError

# primary account path for the HD wallet
PATH = "m/44'/60'/0'/0/0"
ENCRYPT_PREFIX = "hedgehog-entropy:::"
ENTROPY_STRENGTH = 128
IV_LENGTH = 16

_MNEMONIC = Mnemonic("english")


def bytes_from_hex(hex_string: str) -> bytes:
    """Decode a hex string, tolerating an optional ``0x`` prefix."""
    if hex_string[:2] in ("0x", "0X"):
        hex_string = hex_string[2:]
    return bytes.fromhex(hex_string)


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


# ===================================================================
#  BIP-39 Mnemonic Support
# ===================================================================

def entropy_to_mnemonic(entropy_hex: str) -> str:
    """Encode entropy hex as a BIP-39 English mnemonic."""
    return _MNEMONIC.to_mnemonic(bytes_from_hex(entropy_hex))


def mnemonic_to_entropy(mnemonic: str) -> str:
    """Decode a BIP-39 mnemonic back to its entropy hex."""
    try:
        return bytes(_MNEMONIC.to_entropy(mnemonic)).hex()
    except (ValueError, LookupError) as exc:
        raise ValueError(f"Invalid mnemonic: {exc}") from exc


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """64-byte BIP-39 seed."""
    return Mnemonic.to_seed(mnemonic, passphrase)


def generate_mnemonic_and_entropy(strength: int = ENTROPY_STRENGTH) -> tuple[str, str]:
    """
    Create a random mnemonic and the entropy it encodes.

    The entropy hex is what gets encrypted; the mnemonic is its
    human-readable form.
    """
    mnemonic = _MNEMONIC.generate(strength=strength)
    return mnemonic, mnemonic_to_entropy(mnemonic)


# ===================================================================
#  HD Key Derivation (BIP-32)
# ===================================================================

class HDNode:
    """
    Hierarchical Deterministic key derivation node.

    Implements BIP-32 private-parent derivation with HMAC-SHA512.
    Path notation: m/44'/60'/account'/0/index
    """

    HARDENED = 0x80000000

    def __init__(self, private_key: bytes, chain_code: bytes, depth: int = 0,
                 index: int = 0):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth
        self.index = index

    @classmethod
    def from_seed(cls, seed: bytes) -> HDNode:
        """Create master node from a BIP-39 seed."""
        I = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(private_key=I[:32], chain_code=I[32:])

    def _signing_key(self) -> SigningKey:
        return SigningKey.from_string(self.private_key, curve=SECP256k1)

    def public_key(self) -> bytes:
        """Uncompressed (65-byte) secp256k1 public key."""
        return b"\x04" + self._signing_key().get_verifying_key().to_string()

    def compressed_public_key(self) -> bytes:
        raw = self._signing_key().get_verifying_key().to_string()
        prefix = b"\x02" if raw[-1] % 2 == 0 else b"\x03"
        return prefix + raw[:32]

    def derive_child(self, index: int) -> HDNode:
        """Derive a child node at the given index."""
        if index >= self.HARDENED:
            data = b"\x00" + self.private_key + struct.pack(">I", index)
        else:
            data = self.compressed_public_key() + struct.pack(">I", index)

        I = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        tweak = int.from_bytes(I[:32], "big")
        child_key_int = (tweak + int.from_bytes(self.private_key, "big")) % SECP256k1.order
        if tweak >= SECP256k1.order or child_key_int == 0:
            raise ValueError(f"Invalid child key at index {index}")

        return HDNode(
            private_key=child_key_int.to_bytes(32, "big"),
            chain_code=I[32:],
            depth=self.depth + 1,
            index=index,
        )

    def derive_path(self, path: str) -> HDNode:
        """Derive from a BIP-44 path string like "m/44'/60'/0'/0/0"."""
        if path == "m":
            return self
        if path.startswith("m/"):
            path = path[2:]

        node = self
        for component in path.split("/"):
            if component.endswith("'"):
                index = int(component[:-1]) + self.HARDENED
            else:
                index = int(component)
            node = node.derive_child(index)
        return node

    def to_wallet(self) -> Wallet:
        return Wallet(self.private_key, self.public_key())


class Wallet:
    """An Ethereum-style keypair and its address."""

    def __init__(self, private_key: bytes, public_key: bytes):
        self.private_key = private_key
        self.public_key = public_key
        self.address = "0x" + keccak256(public_key[1:])[-20:].hex()

    def get_address_string(self) -> str:
        return self.address

    def get_private_key_string(self) -> str:
        return "0x" + self.private_key.hex()

    def get_public_key_string(self) -> str:
        return "0x" + self.public_key[1:].hex()

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "public_key": self.public_key.hex(),
            "private_key": self.private_key.hex(),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __repr__(self) -> str:
        return f"Wallet({self.address})"


def derive_wallet(entropy_hex: str, path: str = PATH) -> Wallet:
    """
    Deterministically derive the wallet for *entropy_hex* along *path*.

    entropy -> mnemonic -> seed -> BIP-32 node -> keypair -> address
    """
    seed = mnemonic_to_seed(entropy_to_mnemonic(entropy_hex))
    return HDNode.from_seed(seed).derive_path(path).to_wallet()


# ===================================================================
#  Entropy encryption (AES-256-CBC + integrity prefix)
# ===================================================================

def create_iv() -> tuple[bytes, str]:
    """16 random bytes, returned as (iv_bytes, iv_hex)."""
    iv_bytes = os.urandom(IV_LENGTH)
    return iv_bytes, iv_bytes.hex()


def encrypt(entropy_hex: str, iv_bytes: bytes, key_bytes: bytes) -> str:
    """Encrypt ``ENCRYPT_PREFIX + entropy_hex`` and return the ciphertext hex."""
    plaintext = (ENCRYPT_PREFIX + entropy_hex).encode("utf-8")
    cipher = AES.new(key_bytes, AES.MODE_CBC, iv=iv_bytes)
    return cipher.encrypt(pad(plaintext, AES.block_size)).hex()


def decrypt(iv_bytes: bytes, key_bytes: bytes, cipher_text_hex: str) -> str:
    """
    Decrypt and verify the entropy hex.

    Raises IntegrityError when the ciphertext cannot be decoded, the
    padding is wrong, or the plaintext lacks ``ENCRYPT_PREFIX``.
    """
    try:
        cipher = AES.new(key_bytes, AES.MODE_CBC, iv=iv_bytes)
        padded = cipher.decrypt(bytes_from_hex(cipher_text_hex))
        plaintext = unpad(padded, AES.block_size).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise IntegrityError("Could not verify integrity of decrypted string") from exc

    if not plaintext.startswith(ENCRYPT_PREFIX):
        raise IntegrityError("Could not verify integrity of decrypted string")
    return plaintext[len(ENCRYPT_PREFIX):]
