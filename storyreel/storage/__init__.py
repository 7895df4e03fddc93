"""
Key-value persistence backends.

The studio managers only see :class:`KeyValueStore`; which backend sits behind
it is a configuration choice (``storage_backend = memory | file | sqlite``).
"""
from pathlib import Path
from typing import Any, Dict

from .base import KeyValueStore
from .file import FileStore
from .memory import MemoryStore
from .sqlite import SqliteStore

__all__ = ["KeyValueStore", "MemoryStore", "FileStore", "SqliteStore", "open_store"]


def open_store(config: Dict[str, Any]) -> KeyValueStore:
    backend = (config.get("storage_backend") or "file").lower()
    storage_path = Path(config.get("storage_path") or ".storyreel").expanduser()
    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        return FileStore(storage_path)
    if backend == "sqlite":
        return SqliteStore.open(storage_path / "storyreel.db")
    raise ValueError(f"Unknown storage_backend: {backend}")
