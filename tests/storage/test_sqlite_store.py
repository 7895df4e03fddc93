import asyncio

import pytest

from storyreel.config.config import get_default_config
from storyreel.errors import NotFoundError
from storyreel.storage import FileStore, MemoryStore, SqliteStore, open_store


def test_schema_version_and_wal(tmp_path):
    store = SqliteStore.open(tmp_path / "db" / "store.db")
    try:
        assert store.schema_version() == 1
        mode = store.conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"
    finally:
        store.close()


def test_round_trip_upsert_and_delete(tmp_path):
    store = SqliteStore.open(tmp_path / "store.db")

    async def scenario():
        await store.save("projects/p1", {"name": "First"})
        await store.save("projects/p1", {"name": "Second"})
        loaded = await store.load("projects/p1")
        await store.delete("projects/p1")
        await store.delete("projects/p1")
        return loaded

    try:
        assert asyncio.run(scenario()) == {"name": "Second"}
        with pytest.raises(NotFoundError):
            asyncio.run(store.load("projects/p1"))
    finally:
        store.close()


def test_values_survive_reopen(tmp_path):
    path = tmp_path / "store.db"
    store = SqliteStore.open(path)
    asyncio.run(store.save("projects/p1", {"scenes": [1, 2]}))
    store.close()

    reopened = SqliteStore.open(path)
    try:
        assert asyncio.run(reopened.load("projects/p1")) == {"scenes": [1, 2]}
    finally:
        reopened.close()


def test_prefix_listing_is_literal(tmp_path):
    store = SqliteStore.open(tmp_path / "store.db")

    async def scenario():
        for key in ("projects/a", "projects/b", "Projects/c", "projectsXd", "project_/e"):
            await store.save(key, {})
        await store.save("settings", {})
        return await store.list("projects/"), await store.list("project_"), await store.list()

    try:
        by_prefix, underscore, everything = asyncio.run(scenario())
        assert by_prefix == ["projects/a", "projects/b"]
        assert underscore == ["project_/e"]
        assert len(everything) == 6
        asyncio.run(store.clear())
        assert asyncio.run(store.list()) == []
    finally:
        store.close()


def test_open_store_picks_backend(tmp_path):
    config = get_default_config()
    config["storage_path"] = str(tmp_path / "data")

    config["storage_backend"] = "memory"
    assert isinstance(open_store(config), MemoryStore)

    config["storage_backend"] = "file"
    file_store = open_store(config)
    assert isinstance(file_store, FileStore)
    assert file_store.base_path == tmp_path / "data"

    config["storage_backend"] = "sqlite"
    sqlite_store = open_store(config)
    try:
        assert isinstance(sqlite_store, SqliteStore)
        assert sqlite_store.db_path == tmp_path / "data" / "storyreel.db"
    finally:
        sqlite_store.close()

    config["storage_backend"] = "redis"
    with pytest.raises(ValueError):
        open_store(config)
