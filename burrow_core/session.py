"""
Session controller: the stateful authentication surface of Burrow.

Wraps a ``CredentialVault`` and three caller-supplied persistence
callbacks:

    fetch({"lookupKey": ...})          -> {"iv", "cipherText"} | None
    store_auth({"iv", "cipherText", "lookupKey", ["oldLookupKey"]})
    store_user({"username", "walletAddress"})

Callbacks may be plain functions or coroutines.  The controller keeps the
current wallet in memory; the plaintext entropy lives in the vault's local
cache so a session can be restored after a restart.

The controller holds no locks.  Issuing overlapping operations on one
instance races on ``wallet`` and on the cache; callers serialise if they
need to.

Usage:
    async with SessionController(fetch, store_auth, store_user) as ctl:
        wallet = await ctl.sign_up("alice", "correct horse")
        ctl.is_logged_in()  # True

``close()`` (or leaving the ``async with`` block) shuts down the key
deriver's thread pool and closes the cache connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from burrow_core.cache import LocalCache, maybe_await
from burrow_core.entropy import Wallet
from burrow_core.errors import (
    ConstructionError,
    IntegrityError,
    MissingEntropy,
    MissingParameter,
    NotFound,
)
from burrow_core.kdf import KeyDeriver
from burrow_core.records import AuthRecord, UserRecord, parse_fetched
from burrow_core.vault import CredentialVault

logger = logging.getLogger("burrow.session")

FetchFn = Callable[[dict], Any]
StoreFn = Callable[[dict], Any]


async def _gather_all(*aws: Awaitable) -> list:
    """
    Like ``asyncio.gather`` but waits for every awaitable to finish before
    raising the first failure, so no side effect lands after a rollback.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for r in results:
        if isinstance(r, BaseException):
            raise r
    return results


class SessionController:
    """Sign-up, login, password management and session restore."""

    def __init__(
        self,
        fetch: Optional[FetchFn] = None,
        store_auth: Optional[StoreFn] = None,
        store_user: Optional[StoreFn] = None,
        use_local_cache: bool = True,
        cache: LocalCache | None = None,
        vault: CredentialVault | None = None,
        key_deriver: KeyDeriver | None = None,
    ):
        if not (callable(fetch) and callable(store_auth) and callable(store_user)):
            raise ConstructionError(
                "Please pass in valid fetch, store_auth and store_user callbacks"
            )
        self.fetch = fetch
        self.store_auth = store_auth
        self.store_user = store_user
        self.vault = vault or CredentialVault(key_deriver=key_deriver, cache=cache)
        self.wallet: Wallet | None = None
        self._ready = False
        self._restore_task: asyncio.Task | None = None

        # If there's entropy in the cache, rebuild the wallet from it
        # before reporting ready.
        if use_local_cache:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None  # deferred to wait_until_ready()
            if loop is not None:
                self._restore_task = loop.create_task(self._restore_on_start())
        else:
            self._ready = True

    @classmethod
    async def create(cls, *args, **kwargs) -> SessionController:
        """Construct a controller and wait until the initial restore is done."""
        ctl = cls(*args, **kwargs)
        await ctl.wait_until_ready()
        return ctl

    async def _restore_on_start(self) -> None:
        try:
            await self.restore_local_wallet()
        except Exception as exc:
            logger.error(f"Restoring the cached wallet failed: {exc!r}")
            raise
        finally:
            self._ready = True

    # ---- readiness ----

    def is_ready(self) -> bool:
        return self._ready

    async def wait_until_ready(self) -> None:
        if self._ready:
            return
        if self._restore_task is None:
            self._restore_task = asyncio.ensure_future(self._restore_on_start())
        await self._restore_task

    # ---- sign up / login ----

    async def sign_up(self, username: str, password: str) -> Wallet:
        """
        Create a wallet, persist the user and auth records, then log in.

        On any failure the session is logged out before the error is
        re-raised.
        """
        try:
            record, lookup_key = await _gather_all(
                self.vault.create_wallet_record(password),
                self.vault.derive_lookup_key(username, password),
            )
            user = UserRecord(username=username, wallet_address=record.wallet.address)
            auth = AuthRecord(
                iv=record.iv_hex,
                cipher_text=record.cipher_text_hex,
                lookup_key=lookup_key,
            )
            await maybe_await(self.store_user(user.to_dict()))
            await maybe_await(self.store_auth(auth.to_dict()))

            # assigned last so is_logged_in() can't be True before both
            # records are durable
            self.wallet = record.wallet
        except Exception as exc:
            logger.warning(f"sign_up failed, logging out: {exc!r}")
            await self.logout()
            raise
        logger.info("Signed up", extra={"address": record.wallet.address})
        return record.wallet

    async def _fetch_and_recover(self, username: str, password: str):
        lookup_key = await self.vault.derive_lookup_key(username, password)
        data = await maybe_await(self.fetch({"lookupKey": lookup_key}))
        fetched = parse_fetched(data)
        if fetched is None:
            return None
        iv, cipher_text = fetched
        return await self.vault.recover_wallet(password, iv, cipher_text)

    async def login(self, username: str, password: str) -> Wallet:
        recovered = await self._fetch_and_recover(username, password)
        if recovered is None:
            raise NotFound("No account record for user")

        self.wallet = recovered.wallet
        await self.vault.set_entropy(recovered.entropy)
        logger.info("Logged in", extra={"address": recovered.wallet.address})
        return recovered.wallet

    # ---- password management ----

    async def _cached_entropy_or_raise(self, op: str) -> str:
        entropy = await self.vault.get_entropy()
        if entropy is None:
            raise MissingEntropy(f"{op} - missing entropy")
        return entropy

    async def reset_password(self, username: str, password: str) -> None:
        """
        Re-encrypt the cached entropy under a new password and store the
        new auth record.  Logs out on failure.
        """
        entropy = await self._cached_entropy_or_raise("reset_password")
        try:
            record, lookup_key = await _gather_all(
                self.vault.create_wallet_record(password, entropy),
                self.vault.derive_lookup_key(username, password),
            )
            auth = AuthRecord(
                iv=record.iv_hex,
                cipher_text=record.cipher_text_hex,
                lookup_key=lookup_key,
            )
            await maybe_await(self.store_auth(auth.to_dict()))
            self.wallet = record.wallet
        except Exception as exc:
            logger.warning(f"reset_password failed, logging out: {exc!r}")
            await self.logout()
            raise

    async def change_password(self, username: str, password: str,
                              old_password: str) -> None:
        """
        Like ``reset_password`` but also sends ``oldLookupKey`` so the
        store can drop the previous record.  Does NOT log out on failure.
        """
        entropy = await self._cached_entropy_or_raise("change_password")
        record, lookup_key, old_lookup_key = await _gather_all(
            self.vault.create_wallet_record(password, entropy),
            self.vault.derive_lookup_key(username, password),
            self.vault.derive_lookup_key(username, old_password),
        )
        auth = AuthRecord(
            iv=record.iv_hex,
            cipher_text=record.cipher_text_hex,
            lookup_key=lookup_key,
            old_lookup_key=old_lookup_key,
        )
        await maybe_await(self.store_auth(auth.to_dict()))
        self.wallet = record.wallet

    async def confirm_credentials(self, username: str, password: str) -> bool:
        """
        True iff the stored record for these credentials decrypts to the
        cached entropy and the session's current wallet.  Read-only.
        """
        existing_entropy = await self.vault.get_entropy()
        if existing_entropy is None:
            return False  # not logged in yet

        try:
            recovered = await self._fetch_and_recover(username, password)
        except IntegrityError:
            logger.debug("confirm_credentials: record did not decrypt")
            return False
        if recovered is None:
            return False

        return (
            recovered.entropy == existing_entropy
            and self.wallet is not None
            and self.wallet.address == recovered.wallet.address
        )

    # ---- session ----

    async def logout(self) -> None:
        self.wallet = None
        await self.vault.delete_entropy()

    def is_logged_in(self) -> bool:
        return self.wallet is not None

    def get_wallet(self) -> Wallet | None:
        return self.wallet

    async def wallet_exists_locally(self) -> bool:
        return await self.vault.get_entropy() is not None

    async def restore_local_wallet(self) -> Wallet | None:
        """Rebuild the wallet from cached entropy; None if nothing is cached."""
        wallet = await self.vault.get_wallet_from_cache()
        if wallet is not None:
            self.wallet = wallet
        return wallet

    def close(self) -> None:
        """
        Release the vault's key deriver and cache.  The session state is
        left as is; call ``logout`` first to also forget the entropy.
        """
        self.vault.close()

    async def __aenter__(self) -> SessionController:
        await self.wait_until_ready()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()

    async def create_wallet_obj(self, password: str) -> Wallet:
        """
        Create an ephemeral wallet without the sign-up flow.  Nothing is
        sent to the store callbacks.
        """
        if not password:
            raise MissingParameter("Please pass in a valid password")
        record = await self.vault.create_wallet_record(password)
        self.wallet = record.wallet
        await self.vault.set_entropy(record.entropy)
        return record.wallet
