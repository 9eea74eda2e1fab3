#!/usr/bin/env python3
"""
Burrow wallet tool. Offline helpers for inspecting credentials:
  - derive the address for a given entropy
  - generate a fresh entropy / mnemonic / address triple
  - compute the lookup key a server would index a user by
  - run the configured KDF on an arbitrary secret and salt

Usage:
    python run_wallet.py address 47b0e5e107cccc3297d88647c6e84a9f
    python run_wallet.py new
    python run_wallet.py lookup-key alice@example.com hunter2 --profile pbkdf2
    python run_wallet.py derive-key testpassword 072251f44fda8f9aad3cc04992372bf6

Environment variables (alternative to flags):
    BURROW_KDF_PROFILE, BURROW_LOG_LEVEL, BURROW_LOG_FMT
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from burrow_core.config import build_key_deriver, load_config  # noqa: E402
from burrow_core.entropy import (  # noqa: E402
    PATH,
    derive_wallet,
    generate_mnemonic_and_entropy,
)
from burrow_core.errors import BurrowError  # noqa: E402
from burrow_core.logging_config import setup_logging_from_config  # noqa: E402
from burrow_core.vault import CredentialVault  # noqa: E402

logger = logging.getLogger("burrow.wallet")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Burrow wallet tool")
    p.add_argument("--config", default=None, help="Path to burrow.toml config file")
    p.add_argument("--profile", choices=["scrypt", "pbkdf2"], default=None,
                   help="KDF profile (overrides config)")
    sub = p.add_subparsers(dest="command", required=True)

    addr = sub.add_parser("address", help="Derive the address for an entropy")
    addr.add_argument("entropy")
    addr.add_argument("--path", default=PATH, help="HD derivation path")

    sub.add_parser("new", help="Generate entropy, mnemonic and address")

    lk = sub.add_parser("lookup-key", help="Compute a user's lookup key")
    lk.add_argument("username")
    lk.add_argument("password")

    dk = sub.add_parser("derive-key", help="Run the KDF on a secret and salt")
    dk.add_argument("secret")
    dk.add_argument("salt")
    return p.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    # Load config (TOML + env overrides); CLI flags win
    cfg = load_config(args.config)
    if args.profile:
        cfg.kdf.profile = args.profile
    setup_logging_from_config(cfg.logging)

    if args.command == "address":
        wallet = derive_wallet(args.entropy, args.path)
        print(wallet.address)
        return 0

    if args.command == "new":
        mnemonic, entropy = generate_mnemonic_and_entropy()
        print(json.dumps({
            "entropy": entropy,
            "mnemonic": mnemonic,
            "address": derive_wallet(entropy).address,
        }, indent=2))
        return 0

    with build_key_deriver(cfg) as deriver:
        if args.command == "lookup-key":
            vault = CredentialVault(key_deriver=deriver)
            print(await vault.derive_lookup_key(args.username, args.password))
        else:
            key = await deriver.derive_key(args.secret, args.salt)
            print(key.key_hex)
    return 0


def main_sync() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        with contextlib.suppress(KeyboardInterrupt):
            sys.exit(asyncio.run(main()))
    except (BurrowError, ValueError) as exc:
        logger.error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main_sync()
