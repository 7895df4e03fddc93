from abc import ABC, abstractmethod
from typing import Any, List, Optional


class KeyValueStore(ABC):
    """
    Async key-value persistence used by the studio managers.

    Keys are opaque strings chosen by the caller (e.g. ``projects/{id}``);
    values are JSON-serializable. ``load`` raises ``NotFoundError`` for a
    missing key, ``delete`` of a missing key is a no-op.
    """

    @abstractmethod
    async def save(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def load(self, key: str) -> Any:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def list(self, prefix: Optional[str] = None) -> List[str]:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...
