"""
Shared pytest fixtures for the Burrow test suite.
"""

import os
import sys

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from burrow_core.cache import MemoryCache  # noqa: E402
from burrow_core.kdf import KeyDeriver, ScryptProfile  # noqa: E402
from burrow_core.session import SessionController  # noqa: E402
from burrow_core.vault import CredentialVault  # noqa: E402

# Reference vectors
PATH = "m/44'/60'/0'/0/0"
ENTROPY = "47b0e5e107cccc3297d88647c6e84a9f"
ADDRESS = "0xd20ec9deee07b4bdeb28ed5d6dd070cb33c5aa45"
IV_HEX = "072251f44fda8f9aad3cc04992372bf6"
KEY_HEX = "2f106076998c4ca94bfde584968c6945192ce19618d10d52d8c3ad3f8f87009b"
CIPHER_TEXT_HEX = (
    "9dba56a2d0c3cdd6184938658bfbb8ed7c1e582f58343d76c9bcc8e8026ccc5c"
    "772a6240928ba37db3cc678ad12f8927dc93d604182a029dab248ab84db9ccae"
)

# scrypt with a tiny cost so the suite stays fast
FAST_PROFILE = ScryptProfile(n=1024, r=8, p=1)


class AuthBackend:
    """In-memory stand-in for the server behind the persistence callbacks."""

    def __init__(self):
        self.auths: dict[str, dict] = {}
        self.users: list[dict] = []
        self.calls: list[str] = []

    async def fetch(self, params):
        self.calls.append("fetch")
        return self.auths.get(params["lookupKey"])

    async def store_auth(self, record):
        self.calls.append("store_auth")
        old = record.get("oldLookupKey")
        if old is not None:
            self.auths.pop(old, None)
        self.auths[record["lookupKey"]] = {
            "iv": record["iv"],
            "cipherText": record["cipherText"],
        }
        return True

    async def store_user(self, record):
        self.calls.append("store_user")
        self.users.append(dict(record))
        return True


@pytest.fixture
def fast_deriver():
    """Low-cost scrypt deriver, closed after the test."""
    deriver = KeyDeriver(FAST_PROFILE)
    yield deriver
    deriver.close()


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def vault(fast_deriver, cache):
    return CredentialVault(key_deriver=fast_deriver, cache=cache)


@pytest.fixture
def backend():
    return AuthBackend()


@pytest.fixture
def controller(backend, fast_deriver, cache):
    """Ready controller wired to the in-memory backend."""
    return SessionController(
        backend.fetch, backend.store_auth, backend.store_user,
        use_local_cache=False, cache=cache, key_deriver=fast_deriver,
    )
