"""
Burrow - deterministic, password-recoverable HD wallets.

Key features:
- scrypt / PBKDF2 key derivation off the event loop
- BIP-39 entropy and BIP-32 derivation to an Ethereum-style address
- AES-256-CBC entropy encryption with an integrity prefix
- Username/password lookup keys so a server never sees the password
- Session controller for sign-up, login, password reset/change and restore
"""

__version__ = "1.0.0"
__all__ = [
    "errors",
    "kdf",
    "entropy",
    "cache",
    "records",
    "vault",
    "session",
    "config",
    "logging_config",
]
