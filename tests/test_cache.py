"""
Tests for local cache backends (cache.py).

Covers:
  - MemoryCache get / set / delete
  - SqliteCache CRUD, persistence across reopen, schema versioning
  - Context manager lifecycle
  - Protocol conformance
"""

from __future__ import annotations

import asyncio
import sqlite3

import pytest

from burrow_core.cache import LocalCache, MemoryCache, SqliteCache, maybe_await


@pytest.fixture
def store(tmp_path):
    """Fresh SqliteCache in a temp directory."""
    s = SqliteCache(str(tmp_path / "cache.db"))
    yield s
    s.close()


class TestMemoryCache:
    def test_missing_key(self):
        assert MemoryCache().get("nope") is None

    def test_set_get_delete(self):
        c = MemoryCache()
        c.set("k", "v")
        assert c.get("k") == "v"
        c.delete("k")
        assert c.get("k") is None
        assert len(c) == 0

    def test_delete_missing_is_noop(self):
        MemoryCache().delete("nope")

    def test_initial(self):
        assert MemoryCache({"a": "1"}).get("a") == "1"


class TestSqliteCache:
    def test_tables_created(self, store):
        tables = store._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()
        names = {r["name"] for r in tables}
        assert "cache_entries" in names
        assert "schema_version" in names

    def test_set_get(self, store):
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_overwrite(self, store):
        store.set("k", "v1")
        store.set("k", "v2")
        assert store.get("k") == "v2"

    def test_delete(self, store):
        store.set("k", "v")
        store.delete("k")
        assert store.get("k") is None

    def test_missing_key(self, store):
        assert store.get("missing") is None

    def test_persists_across_reopen(self, tmp_path):
        path = str(tmp_path / "sub" / "cache.db")
        with SqliteCache(path) as c:
            c.set("hedgehog-entropy-key", "abcd")
        with SqliteCache(path) as c:
            assert c.get("hedgehog-entropy-key") == "abcd"

    def test_newer_schema_rejected(self, tmp_path):
        path = str(tmp_path / "cache.db")
        SqliteCache(path).close()
        conn = sqlite3.connect(path)
        conn.execute("UPDATE schema_version SET version = 99 WHERE id = 1")
        conn.commit()
        conn.close()
        with pytest.raises(RuntimeError):
            SqliteCache(path)


class TestProtocol:
    def test_backends_conform(self, store):
        assert isinstance(MemoryCache(), LocalCache)
        assert isinstance(store, LocalCache)

    def test_maybe_await(self):
        async def coro():
            return 7

        async def run():
            return await maybe_await(coro()), await maybe_await(3)

        assert asyncio.run(run()) == (7, 3)
