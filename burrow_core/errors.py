"""
Exception taxonomy for Burrow.

Every error raised by the credential pipeline derives from ``BurrowError``
so callers can catch the whole family at once.  Several classes also
inherit from the builtin they refine, so existing ``except ValueError``
handlers keep working.
"""

from __future__ import annotations


class BurrowError(Exception):
    """Base class for all Burrow errors."""


class MissingParameter(BurrowError, ValueError):
    """A required username or password was empty or absent."""


class ConstructionError(BurrowError, TypeError):
    """A SessionController was built without its persistence callbacks."""


class NotFound(BurrowError):
    """No auth record exists for the derived lookup key."""


class IntegrityError(BurrowError, ValueError):
    """
    Decrypted plaintext failed the integrity-prefix check.

    Wrong password, wrong IV and tampered ciphertext all end up here and
    are deliberately indistinguishable.
    """


class MissingEntropy(BurrowError):
    """A password reset/change was attempted with no cached entropy."""


class KeyDerivationUnavailable(BurrowError, RuntimeError):
    """The background executor used for key derivation cannot accept work."""


class ConfigurationError(BurrowError, ValueError):
    """An unknown KDF profile or cache backend was requested."""
