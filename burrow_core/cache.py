"""
Local key/value caches for Burrow sessions.

The session layer keeps the plaintext entropy in a trusted local cache so
that a wallet survives restarts without asking for the password again.
Any object with ``get``/``set``/``delete`` works; the methods may be plain
functions or coroutines.

Two backends ship here:
  - ``MemoryCache``  – a dict, lost on exit (tests, ephemeral sessions)
  - ``SqliteCache``  – a single-table SQLite file for headless clients

Usage:
    cache = SqliteCache("data/burrow-cache.db")
    cache.set("hedgehog-entropy-key", entropy)
    cache.get("hedgehog-entropy-key")
"""

from __future__ import annotations

import inspect
import logging
import sqlite3
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger("burrow.cache")


@runtime_checkable
class LocalCache(Protocol):
    """Minimal interface shared by all cache backends."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: str) -> Any: ...

    def delete(self, key: str) -> Any: ...


async def maybe_await(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


class MemoryCache:
    """Dict-backed cache."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class SqliteCache:
    """Thin SQLite wrapper persisting cache entries across restarts."""

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/burrow-cache.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._create_tables()
        self._ensure_schema_version()
        logger.info(f"Cache opened: {db_path}")

    # ── schema ───────────────────────────────────────────────────

    def _create_tables(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                id      INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL
            )
        """)
        c.commit()

    def _ensure_schema_version(self) -> None:
        row = self._conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO schema_version (id, version) VALUES (1, ?)",
                (self.CURRENT_SCHEMA_VERSION,),
            )
            self._conn.commit()
        elif row["version"] > self.CURRENT_SCHEMA_VERSION:
            raise RuntimeError(
                f"Cache schema v{row['version']} is newer than this software "
                f"(v{self.CURRENT_SCHEMA_VERSION}).  Upgrade Burrow."
            )

    # ── entries ──────────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM cache_entries WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO cache_entries (key, value) VALUES (?, ?)",
            (key, value),
        )
        self._conn.commit()

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
        self._conn.commit()

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
