import json
from typing import Any, Dict, List, Optional

from storyreel.errors import NotFoundError

from .base import KeyValueStore


def _copy(value: Any) -> Any:
    # JSON round trip so callers never share structure with the store.
    return json.loads(json.dumps(value))


class MemoryStore(KeyValueStore):
    """In-process store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    async def save(self, key: str, value: Any) -> None:
        self._data[key] = _copy(value)

    async def load(self, key: str) -> Any:
        if key not in self._data:
            raise NotFoundError(f"Key {key} not found")
        return _copy(self._data[key])

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: Optional[str] = None) -> List[str]:
        if not prefix:
            return list(self._data)
        return [k for k in self._data if k.startswith(prefix)]

    async def clear(self) -> None:
        self._data.clear()
