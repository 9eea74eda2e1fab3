"""
Logging configuration for Burrow.

Every library module logs under the ``burrow`` namespace
(``burrow.kdf``, ``burrow.vault``, ``burrow.session``, ...).
``setup_logging`` attaches handlers to that namespace only, so an
embedding application keeps control of its root logger.

Two output formats:
  - **human** – coloured single line, context fields as ``key=value``
  - **json**  – newline-delimited JSON, context fields as top-level keys

Context is passed with ``extra=``::

    logger.info("Logged in", extra={"address": wallet.address})

Passwords, entropy and derived keys must never reach a log sink.  Both
formatters blank any context field named in ``SECRET_FIELDS`` and mask
bare hex runs of 32+ characters (entropy, keys, ciphertexts) in the
message and traceback text.  ``0x``-prefixed addresses are left intact.

Usage:
    from burrow_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="burrow.log")
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from burrow_core.config import LoggingConfig

LOGGER_NAMESPACE = "burrow"
REDACTED = "[redacted]"

SECRET_FIELDS = frozenset({
    "password", "old_password", "secret",
    "entropy", "mnemonic", "seed",
    "key", "key_hex", "private_key",
    "cipher_text", "iv",
})

_HEX_RUN = re.compile(r"\b[0-9a-fA-F]{32,}\b")

# attributes every LogRecord carries; anything else came in via ``extra=``
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def scrub(text: str) -> str:
    """Mask bare hex runs long enough to be key material."""
    return _HEX_RUN.sub(REDACTED, text)


def _context(record: logging.LogRecord) -> dict[str, Any]:
    ctx = {}
    for name, value in record.__dict__.items():
        if name in _RECORD_ATTRS or name.startswith("_"):
            continue
        ctx[name] = REDACTED if name in SECRET_FIELDS else value
    return ctx


class _JSONFormatter(logging.Formatter):
    """One JSON object per record, context fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": scrub(record.getMessage()),
        }
        for name, value in _context(record).items():
            log_obj.setdefault(name, value)
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = scrub(self.formatException(record.exc_info))
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured single line; context appended as key=value pairs."""

    COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = (
            f"{colour}{ts} [{record.levelname:<7}]{self.RESET} "
            f"{record.name}: {scrub(record.getMessage())}"
        )
        ctx = _context(record)
        if ctx:
            line += " " + " ".join(f"{k}={v}" for k, v in ctx.items())
        if record.exc_info and record.exc_info[1]:
            line += "\n" + scrub(self.formatException(record.exc_info))
        return line


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Install handlers on the ``burrow`` logger and return it.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` or ``"json"``.
    log_file : str, optional
        If provided, logs are *also* written here, always as JSON.

    Calling it again replaces the previous handlers.  Records do not
    propagate to the root logger once handlers are installed here.
    """
    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_JSONFormatter() if fmt == "json" else _HumanFormatter())
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())
        logger.addHandler(fh)
    return logger


def setup_logging_from_config(cfg: LoggingConfig) -> logging.Logger:
    return setup_logging(level=cfg.level, fmt=cfg.format, log_file=cfg.file)
